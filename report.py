"""Run summary rendering and removal-plan CSV export.

The text summary is what an operator reads after every run that got as far
as a plan:

  dry run   — every (kept, deleted) pair with ids and timestamps, then a
              hint that ``--execute`` applies the same plan.
  execute   — the same pairs, the outcome of every batch, and the final
              attempted / deleted / failed_remaining totals.

The CSV export writes the plan itself, one row per removal candidate, so it
can be reviewed or diffed before an execute run.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Sequence
from pathlib import Path

from composite_key import format_key
from models import RemovalCandidate, RunMode, RunSummary
from planner import describe_candidate

LOGGER = logging.getLogger(__name__)

PLAN_CSV_COLUMNS = [
    "position",
    "candidate_id",
    "candidate_created_at",
    "canonical_id",
    "canonical_created_at",
    "composite_key",
]

_RULE = "=" * 60


def render_run_summary(summary: RunSummary, fields: Sequence[str] | None = None) -> str:
    """Render the full operator-facing summary for one run."""
    dry_run = summary.mode is RunMode.DRY_RUN
    lines = [
        f"{'[DRY RUN] ' if dry_run else ''}Duplicate removal summary",
        _RULE,
        f"Records scanned:  {summary.total_records}",
        f"Duplicate groups: {len(summary.duplicate_groups)}",
        f"Malformed:        {len(summary.malformed)}",
        "",
    ]

    if summary.candidates:
        lines.append(f"Found {len(summary.candidates)} duplicate entries to remove:")
        lines.append("")
        for index, candidate in enumerate(summary.candidates, start=1):
            lines.append(describe_candidate(candidate, index, fields=fields))
            lines.append("")
    else:
        lines.append("No duplicates to remove.")
        lines.append("")

    if summary.malformed:
        lines.append("Malformed records (excluded from deduplication):")
        for error in summary.malformed:
            lines.append(f"  - {error}")
        lines.append("")

    execution = summary.execution
    if execution is not None:
        if execution.batches:
            lines.append("Batches:")
            for batch in execution.batches:
                if batch.succeeded:
                    lines.append(f"  batch {batch.number}: deleted {len(batch.ids)} entries")
                else:
                    lines.append(f"  batch {batch.number}: FAILED ({len(batch.ids)} entries) {batch.error}")
            lines.append("")
        lines.append(
            f"Totals: attempted={execution.attempted} "
            f"deleted={execution.deleted} "
            f"failed_remaining={execution.failed_remaining}"
        )
        if execution.failed_remaining:
            lines.append("Re-run with --execute to retry the remaining duplicates.")
    elif dry_run and summary.candidates:
        lines.append("This was a dry run. To actually delete these duplicates, re-run with --execute.")

    return "\n".join(lines).rstrip() + "\n"


def write_plan_csv(path: str | Path, candidates: Sequence[RemovalCandidate]) -> None:
    """Write the removal plan to ``path``, replacing any previous file."""
    output = Path(path)
    with output.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=PLAN_CSV_COLUMNS)
        writer.writeheader()
        for position, candidate in enumerate(candidates, start=1):
            writer.writerow({
                "position": position,
                "candidate_id": candidate.record.id,
                "candidate_created_at": candidate.record.created_at.isoformat(),
                "canonical_id": candidate.canonical.id,
                "canonical_created_at": candidate.canonical.created_at.isoformat(),
                "composite_key": format_key(candidate.key),
            })

    LOGGER.info("Wrote removal plan (%s candidates) to %s", len(candidates), output)
