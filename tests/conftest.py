from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from models import Record

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def make_record(record_id: str | int, minutes: int = 0, **fields: Any) -> Record:
    """Card-shaped record created ``minutes`` after T0."""
    row = {
        "contributor_name": "Alice",
        "card_name": "Sol Ring",
        "quantity": 1,
        "deck_filename": "deck.txt",
    }
    row.update(fields)
    return Record(id=str(record_id), created_at=T0 + timedelta(minutes=minutes), fields=row)


class FakeStore:
    """In-memory source and sink that applies deletes atomically per call."""

    def __init__(self, records: Sequence[Record], fail_calls: Sequence[int] = ()) -> None:
        self.records = list(records)
        self.fail_calls = set(fail_calls)
        self.delete_calls: list[tuple[str, ...]] = []
        self.fetch_count = 0

    def fetch_all(self) -> list[Record]:
        self.fetch_count += 1
        return sorted(self.records, key=lambda record: record.created_at)

    def delete_by_ids(self, ids: Sequence[str]) -> None:
        self.delete_calls.append(tuple(ids))
        if len(self.delete_calls) in self.fail_calls:
            raise RuntimeError(f"simulated failure on call {len(self.delete_calls)}")
        doomed = set(ids)
        self.records = [record for record in self.records if record.id not in doomed]

    @property
    def ids(self) -> list[str]:
        return [record.id for record in self.records]
