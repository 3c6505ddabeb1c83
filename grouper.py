"""Partition an oldest-first record stream into duplicate groups."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from composite_key import KeyDefinition, format_key
from errors import MalformedRecord
from models import CompositeKey, DuplicateGroup, Record

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class GroupingResult:
    """Groups keyed by composite key, in first-seen order.

    ``positions`` maps every grouped record id to its index in the input
    stream so later stages can reproduce encounter order exactly.
    """

    groups: dict[CompositeKey, DuplicateGroup] = field(default_factory=dict)
    malformed: list[MalformedRecord] = field(default_factory=list)
    positions: dict[str, int] = field(default_factory=dict)
    total_records: int = 0

    def duplicate_groups(self) -> Iterator[DuplicateGroup]:
        return (group for group in self.groups.values() if group.has_duplicates)

    @property
    def duplicate_count(self) -> int:
        return sum(len(group.duplicates) for group in self.groups.values())


def group_records(
    records: Iterable[Record],
    key_def: KeyDefinition,
    log_malformed: bool = True,
) -> GroupingResult:
    """Group records by composite key; the first record seen for a key is canonical.

    The input must already be sorted ascending by ``created_at``. Nothing is
    re-sorted here, so the earliest record wins only because it arrives first.
    Records missing an identity field are collected as MalformedRecord and
    left out of every group. Pass ``log_malformed=False`` when another
    grouping of the same records already reports them.
    """
    canonical: dict[CompositeKey, Record] = {}
    duplicates: dict[CompositeKey, list[Record]] = {}
    result = GroupingResult()

    for position, record in enumerate(records):
        result.total_records += 1
        try:
            key = key_def.derive(record)
        except MalformedRecord as exc:
            if log_malformed:
                LOGGER.warning("Excluding malformed record: %s", exc)
            result.malformed.append(exc)
            continue

        result.positions[record.id] = position
        if key in canonical:
            duplicates[key].append(record)
        else:
            canonical[key] = record
            duplicates[key] = []

    for key, first in canonical.items():
        result.groups[key] = DuplicateGroup(key=key, canonical=first, duplicates=tuple(duplicates[key]))

    LOGGER.info(
        "Grouped %s records into %s groups (%s with duplicates, %s duplicates, %s malformed)",
        result.total_records,
        len(result.groups),
        sum(1 for _ in result.duplicate_groups()),
        result.duplicate_count,
        len(result.malformed),
    )
    for group in result.duplicate_groups():
        LOGGER.debug(
            "key=%s canonical=%s duplicates=%s",
            format_key(group.key),
            group.canonical.id,
            [record.id for record in group.duplicates],
        )
    return result
