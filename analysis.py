"""Read-only duplicate analysis: how records cluster before anything is removed."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from composite_key import KeyDefinition, format_key, parse_field_list
from grouper import group_records
from models import DuplicateGroup, Record

DEFAULT_LOOSE_FIELDS: tuple[str, ...] = ("contributor_name", "card_name")
DEFAULT_QUANTITY_FIELD = os.getenv("DEDUP_QUANTITY_FIELD", "quantity")
DEFAULT_RECENT_HOURS = float(os.getenv("DEDUP_RECENT_HOURS", "24"))

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LooseGroupStats:
    """A loose-key group seen more than once, with its summed quantity."""

    group: DuplicateGroup
    upload_count: int
    total_quantity: float


@dataclass(frozen=True, slots=True)
class AnalysisReport:
    total_records: int
    loose_fields: tuple[str, ...]
    exact_fields: tuple[str, ...]
    unique_loose_combinations: int
    loose_duplicates: tuple[LooseGroupStats, ...]
    exact_duplicates: tuple[DuplicateGroup, ...]
    recent_duplicates: tuple[LooseGroupStats, ...]
    malformed: int
    recent_window: timedelta

    @property
    def total_duplicate_entries(self) -> int:
        return sum(stats.upload_count - 1 for stats in self.loose_duplicates)


def loose_key_from_env(fields: str | None = None) -> KeyDefinition:
    """Loose grouping uses the exact key's normalization with fewer fields."""
    exact = KeyDefinition.from_env()
    raw = fields if fields is not None else os.getenv("DEDUP_LOOSE_FIELDS")
    return KeyDefinition(
        fields=parse_field_list(raw) if raw else DEFAULT_LOOSE_FIELDS,
        case_sensitive=exact.case_sensitive,
        strip_whitespace=exact.strip_whitespace,
    )


def analyze_records(
    records: Sequence[Record],
    exact_key: KeyDefinition,
    loose_key: KeyDefinition,
    now: datetime,
    quantity_field: str = DEFAULT_QUANTITY_FIELD,
    recent_window: timedelta = timedelta(hours=DEFAULT_RECENT_HOURS),
) -> AnalysisReport:
    """Summarize loose and exact duplicate clusters in ``records``.

    Loose groups share only the loose key (e.g. same contributor and card,
    any quantity or deck) and are ranked by upload count. Exact groups share
    the full removal key and are what a cleanup run would collapse.
    """
    loose = group_records(records, loose_key, log_malformed=False)
    exact = group_records(records, exact_key)

    loose_stats = [
        LooseGroupStats(
            group=group,
            upload_count=len(group.members),
            total_quantity=sum(_quantity(member.get(quantity_field)) for member in group.members),
        )
        for group in loose.duplicate_groups()
    ]
    # sorted() is stable: equal counts keep first-seen order
    loose_stats = sorted(loose_stats, key=lambda stats: stats.upload_count, reverse=True)
    exact_sets = sorted(exact.duplicate_groups(), key=lambda group: len(group.members), reverse=True)

    cutoff = now - recent_window
    recent = [
        stats for stats in loose_stats
        if any(member.created_at > cutoff for member in stats.group.members)
    ]

    LOGGER.info(
        "Analysis: records=%s loose_sets=%s exact_sets=%s recent=%s",
        len(records),
        len(loose_stats),
        len(exact_sets),
        len(recent),
    )
    return AnalysisReport(
        total_records=len(records),
        loose_fields=loose_key.fields,
        exact_fields=exact_key.fields,
        unique_loose_combinations=len(loose.groups),
        loose_duplicates=tuple(loose_stats),
        exact_duplicates=tuple(exact_sets),
        recent_duplicates=tuple(recent),
        malformed=len(exact.malformed),
        recent_window=recent_window,
    )


def render_analysis(report: AnalysisReport) -> str:
    lines: list[str] = []
    loose_label = " + ".join(report.loose_fields)

    if report.loose_duplicates:
        lines.append(f"Found {len(report.loose_duplicates)} duplicate sets by {loose_label}:")
        lines.append("")
        for index, stats in enumerate(report.loose_duplicates, start=1):
            lines.append(f"{index}. {format_key(stats.group.key)}")
            lines.append(f"   Total uploads:  {stats.upload_count}")
            lines.append(f"   Total quantity: {_format_number(stats.total_quantity)}")
            for position, member in enumerate(stats.group.members, start=1):
                lines.append(f"     {position}. {member.created_at.isoformat(sep=' ', timespec='seconds')} | ID: {member.id}")
            lines.append("")
    else:
        lines.append(f"No duplicate sets by {loose_label}.")
        lines.append("")

    lines.extend([
        "Summary statistics:",
        f"  Total records:                 {report.total_records}",
        f"  Unique {loose_label} combinations: {report.unique_loose_combinations}",
        f"  Duplicate sets found:          {len(report.loose_duplicates)}",
        f"  Total duplicate entries:       {report.total_duplicate_entries}",
        f"  Malformed records:             {report.malformed}",
        "",
    ])

    exact_label = " + ".join(report.exact_fields)
    if report.exact_duplicates:
        lines.append(f"Found {len(report.exact_duplicates)} sets of exact duplicates ({exact_label}):")
        lines.append("")
        for index, group in enumerate(report.exact_duplicates, start=1):
            lines.append(f"{index}. {format_key(group.key)}")
            lines.append(f"   Duplicate count: {len(group.members)}")
            for position, member in enumerate(group.members, start=1):
                lines.append(f"     {position}. {member.created_at.isoformat(sep=' ', timespec='seconds')} | ID: {member.id}")
            lines.append("")
    else:
        lines.append(f"No exact duplicates ({exact_label}).")
        lines.append("")

    if report.recent_duplicates:
        hours = _format_number(report.recent_window.total_seconds() / 3600)
        lines.append(f"Recent duplicates (last {hours} hours): {len(report.recent_duplicates)}")
        for index, stats in enumerate(report.recent_duplicates, start=1):
            lines.append(f"  {index}. {format_key(stats.group.key)} ({stats.upload_count} uploads)")

    return "\n".join(lines).rstrip() + "\n"


def _quantity(value: object) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0
    return 0


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"
