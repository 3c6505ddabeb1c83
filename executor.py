"""Sequential, best-effort batched deletion of removal candidates."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Protocol, TypeVar

from models import BatchResult, ExecutionSummary, RemovalCandidate

DEFAULT_BATCH_SIZE = 10

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class RecordSink(Protocol):
    def delete_by_ids(self, ids: Sequence[str]) -> None:
        """Remove all of ``ids`` or none of them; raise on failure."""


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items, preserving order."""
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def execute_batches(
    candidates: Sequence[RemovalCandidate],
    sink: RecordSink,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ExecutionSummary:
    """Delete candidates in fixed-size batches, one request per batch.

    Batches run strictly one after another. A failed batch is logged and
    counted as undeleted; it is not retried and the remaining batches still
    run. Each batch is a disjoint id set, so earlier failures say nothing
    about later ones.
    """
    results: list[BatchResult] = []
    deleted = 0

    for number, batch in enumerate(chunked(candidates, batch_size), start=1):
        ids = tuple(candidate.id for candidate in batch)
        try:
            sink.delete_by_ids(ids)
        except Exception as exc:  # any sink failure leaves this batch in the store
            LOGGER.error("Error deleting batch %s (%s entries): %s", number, len(ids), exc)
            results.append(BatchResult(number=number, ids=ids, error=str(exc)))
            continue

        deleted += len(ids)
        results.append(BatchResult(number=number, ids=ids))
        LOGGER.info("Deleted batch %s (%s entries)", number, len(ids))

    summary = ExecutionSummary(
        attempted=len(candidates),
        deleted=deleted,
        failed_remaining=len(candidates) - deleted,
        batches=tuple(results),
    )
    LOGGER.info(
        "Batch delete complete: attempted=%s deleted=%s failed_remaining=%s batches=%s",
        summary.attempted,
        summary.deleted,
        summary.failed_remaining,
        len(results),
    )
    return summary
