"""Run one deduplication pass: fetch, group, plan, then preview or delete."""

from __future__ import annotations

import logging
from typing import Protocol

from composite_key import KeyDefinition
from executor import DEFAULT_BATCH_SIZE, RecordSink, execute_batches
from grouper import group_records
from models import Record, RunMode, RunSummary
from planner import plan_removals

LOGGER = logging.getLogger(__name__)


class RecordSource(Protocol):
    def fetch_all(self) -> list[Record]:
        """Return every record, ascending by created_at; raise SourceUnavailable on failure."""


def run_deduplication(
    source: RecordSource,
    sink: RecordSink,
    key_def: KeyDefinition,
    mode: RunMode = RunMode.DRY_RUN,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> RunSummary:
    """Build the removal plan and apply it only when ``mode`` is EXECUTE.

    The mode is fixed for the whole call, so a dry run reports exactly the
    plan an execute run would act on for the same data. SourceUnavailable
    from the fetch propagates before any plan exists.
    """
    if batch_size < 1:
        raise ValueError(f"batch size must be at least 1, got {batch_size}")

    records = source.fetch_all()
    LOGGER.info("Fetched %s records", len(records))

    grouping = group_records(records, key_def)
    candidates = plan_removals(grouping)
    LOGGER.info("Planned %s removals (mode=%s)", len(candidates), mode.value)

    execution = None
    if mode is RunMode.EXECUTE:
        execution = execute_batches(candidates, sink, batch_size=batch_size)
    else:
        LOGGER.info("[dry-run] Skipping deletion of %s records", len(candidates))

    return RunSummary(
        mode=mode,
        total_records=grouping.total_records,
        groups=tuple(grouping.groups.values()),
        candidates=tuple(candidates),
        malformed=tuple(grouping.malformed),
        execution=execution,
    )
