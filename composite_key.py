"""Composite key definition: which identity fields make two records duplicates."""

from __future__ import annotations

import os
from dataclasses import dataclass

from errors import MalformedRecord
from models import CompositeKey, Record

# Field order of the gathered_cards cleanup this tool was written for.
DEFAULT_KEY_FIELDS: tuple[str, ...] = (
    "contributor_name",
    "card_name",
    "quantity",
    "deck_filename",
)
KEY_SEPARATOR = "::"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class KeyDefinition:
    """Ordered identity fields plus the normalization applied to their values.

    Values are compared as strings, so ``4`` and ``"4"`` are equal. A field
    whose column is absent or ``None`` makes the record malformed; an empty
    string is a legitimate value.
    """

    fields: tuple[str, ...] = DEFAULT_KEY_FIELDS
    case_sensitive: bool = True
    strip_whitespace: bool = False

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("Composite key needs at least one identity field")
        if len(set(self.fields)) != len(self.fields):
            raise ValueError(f"Composite key fields must be unique: {self.fields}")

    @classmethod
    def from_env(cls, fields: str | None = None) -> KeyDefinition:
        """Build a key definition from DEDUP_KEY_* env vars; ``fields`` overrides DEDUP_KEY_FIELDS."""
        raw_fields = fields if fields is not None else os.getenv("DEDUP_KEY_FIELDS")
        return cls(
            fields=parse_field_list(raw_fields) if raw_fields else DEFAULT_KEY_FIELDS,
            case_sensitive=_env_flag("DEDUP_KEY_CASE_SENSITIVE", default=True),
            strip_whitespace=_env_flag("DEDUP_KEY_STRIP_WHITESPACE", default=False),
        )

    def derive(self, record: Record) -> CompositeKey:
        """Return the record's composite key or raise MalformedRecord."""
        missing = [name for name in self.fields if record.get(name) is None]
        if missing:
            raise MalformedRecord(record.id, missing)
        return tuple(self._normalize(record.get(name)) for name in self.fields)

    def _normalize(self, value: object) -> str:
        text = str(value)
        if self.strip_whitespace:
            text = text.strip()
        if not self.case_sensitive:
            text = text.casefold()
        return text


def format_key(key: CompositeKey) -> str:
    """Render a key the way operators are used to reading it: ``a::b::c``."""
    return KEY_SEPARATOR.join(key)


def parse_field_list(raw: str) -> tuple[str, ...]:
    """Split a comma-separated field list, dropping blanks."""
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")
