"""Shared typed models for duplicate detection and removal."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Normalized identity-field values, in key definition order.
CompositeKey = tuple[str, ...]


class RunMode(enum.Enum):
    """Whether a run may mutate the store. Selected once per invocation."""

    DRY_RUN = "dry-run"
    EXECUTE = "execute"


@dataclass(frozen=True, slots=True)
class Record:
    """One row of the source collection. Never mutated by the engine."""

    id: str
    created_at: datetime
    fields: dict[str, Any] = field(default_factory=dict, compare=False)

    def get(self, name: str) -> Any:
        return self.fields.get(name)


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Earliest record for a key plus every later record sharing it."""

    key: CompositeKey
    canonical: Record
    duplicates: tuple[Record, ...] = ()

    @property
    def members(self) -> tuple[Record, ...]:
        return (self.canonical, *self.duplicates)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)


@dataclass(frozen=True, slots=True)
class RemovalCandidate:
    """A duplicate scheduled for removal and the canonical record it duplicates."""

    record: Record
    canonical: Record
    key: CompositeKey

    @property
    def id(self) -> str:
        return self.record.id


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Outcome of one delete request."""

    number: int
    ids: tuple[str, ...]
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ExecutionSummary:
    """Totals across every batch of an execute run."""

    attempted: int
    deleted: int
    failed_remaining: int
    batches: tuple[BatchResult, ...] = ()

    @property
    def failed_batches(self) -> tuple[BatchResult, ...]:
        return tuple(batch for batch in self.batches if not batch.succeeded)


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Everything a run decided and did, for reporting."""

    mode: RunMode
    total_records: int
    groups: tuple[DuplicateGroup, ...]
    candidates: tuple[RemovalCandidate, ...]
    malformed: tuple[Any, ...] = ()
    execution: ExecutionSummary | None = None

    @property
    def duplicate_groups(self) -> tuple[DuplicateGroup, ...]:
        return tuple(group for group in self.groups if group.has_duplicates)
