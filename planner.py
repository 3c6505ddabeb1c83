"""Turn duplicate groups into an ordered removal plan."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from composite_key import format_key
from grouper import GroupingResult
from models import RemovalCandidate


def plan_removals(grouping: GroupingResult) -> list[RemovalCandidate]:
    """Return one candidate per non-canonical record, in input encounter order.

    Candidates from different groups interleave exactly as their records did
    in the source stream, so identical input always yields an identical plan.
    """
    candidates = [
        RemovalCandidate(record=duplicate, canonical=group.canonical, key=group.key)
        for group in grouping.groups.values()
        for duplicate in group.duplicates
    ]
    candidates.sort(key=lambda candidate: grouping.positions[candidate.id])
    return candidates


def describe_candidate(
    candidate: RemovalCandidate,
    index: int,
    fields: Sequence[str] | None = None,
) -> str:
    """Human-readable entry: what is kept and what is deleted, with ids and timestamps."""
    if fields and len(fields) == len(candidate.key):
        identity = ", ".join(f"{name}={value}" for name, value in zip(fields, candidate.key))
    else:
        identity = format_key(candidate.key)

    return "\n".join([
        f"{index}. {identity}",
        f"   Keeping:  {_format_timestamp(candidate.canonical.created_at)} (ID: {candidate.canonical.id})",
        f"   Deleting: {_format_timestamp(candidate.record.created_at)} (ID: {candidate.record.id})",
    ])


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="seconds")
