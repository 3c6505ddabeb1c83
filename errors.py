"""Error kinds raised by the deduplication engine and its store adapter."""

from __future__ import annotations

from collections.abc import Iterable


class DedupError(Exception):
    """Base class for deduplication errors."""


class MalformedRecord(DedupError):
    """A record lacks one or more identity fields and cannot be keyed."""

    def __init__(self, record_id: str, missing_fields: Iterable[str]) -> None:
        self.record_id = record_id
        self.missing_fields = tuple(missing_fields)
        super().__init__(
            f"Record id={record_id} is missing identity fields: {', '.join(self.missing_fields)}"
        )


class SourceUnavailable(DedupError):
    """The full, ordered record set could not be fetched."""


class BatchDeleteFailure(DedupError):
    """A single delete-by-id-set request failed; none of its ids were removed."""

    def __init__(self, ids: Iterable[str], reason: str) -> None:
        self.ids = tuple(ids)
        self.reason = reason
        super().__init__(f"Delete of {len(self.ids)} ids failed: {reason}")
