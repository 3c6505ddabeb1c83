"""Supabase (PostgREST) table adapter: the record source and sink for cleanup runs."""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import requests

from errors import BatchDeleteFailure, SourceUnavailable
from models import Record

REQUEST_TIMEOUT_SECONDS = 30
MAX_RETRIES = 3
DEFAULT_PAGE_SIZE = int(os.getenv("SUPABASE_PAGE_SIZE", "1000"))

LOGGER = logging.getLogger(__name__)

_URL_ENV_VARS = ("SUPABASE_URL", "REACT_APP_SUPABASE_URL")
_KEY_ENV_VARS = ("SUPABASE_KEY", "SUPABASE_SERVICE_ROLE_KEY", "REACT_APP_SUPABASE_ANON_KEY")


class SupabaseTable:
    """Reads a whole table oldest-first and deletes rows by id set."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.table = table
        self.page_size = page_size
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }

    @classmethod
    def from_env(cls, table: str) -> SupabaseTable:
        """Build an adapter from SUPABASE_URL / SUPABASE_KEY (or their legacy names)."""
        return cls(
            base_url=_first_env(_URL_ENV_VARS),
            api_key=_first_env(_KEY_ENV_VARS),
            table=table,
        )

    def fetch_all(self) -> list[Record]:
        """Fetch every row ordered by created_at ascending, paging until an empty page.

        The server may cap each page below ``page_size`` (PostgREST max-rows),
        so a short page does not mean the table is exhausted.
        """
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            params = {
                "select": "*",
                "order": "created_at.asc,id.asc",
                "limit": str(self.page_size),
                "offset": str(offset),
            }
            try:
                response = _request_with_backoff(
                    method="GET", url=self._endpoint, headers=self._headers, params=params
                )
            except RuntimeError as exc:
                raise SourceUnavailable(f"Failed to fetch {self.table}: {exc}") from exc

            page = _json_or_none(response)
            if not isinstance(page, list):
                raise SourceUnavailable(f"Unexpected {self.table} payload shape: expected a list")

            if not page:
                break
            rows.extend(page)
            LOGGER.info("Fetched %s rows from %s (offset=%s)", len(page), self.table, offset)
            offset += len(page)

        return _ensure_ascending([_row_to_record(row) for row in rows])

    def delete_by_ids(self, ids: Sequence[str]) -> None:
        """Delete exactly ``ids`` in one request. Not retried."""
        if not ids:
            return
        headers = {**self._headers, "Prefer": "return=representation"}
        params = {"id": _in_filter(ids)}
        try:
            response = requests.request(
                method="DELETE",
                url=self._endpoint,
                headers=headers,
                params=params,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise BatchDeleteFailure(ids, f"{exc} {_error_body(exc)}".strip()) from exc

        removed = _json_or_none(response)
        if isinstance(removed, list):
            if not removed:
                # Row-level security filters DELETE silently instead of rejecting it.
                raise BatchDeleteFailure(ids, "store removed 0 rows; check the table's delete policy")
            if len(removed) < len(ids):
                LOGGER.warning(
                    "Store removed %s of %s requested rows from %s", len(removed), len(ids), self.table
                )


def _row_to_record(row: Any) -> Record:
    if not isinstance(row, dict) or row.get("id") is None:
        raise SourceUnavailable(f"Row without an id in fetch result: {row!r}")
    record_id = str(row["id"])
    created_at = _parse_datetime(row.get("created_at"))
    if created_at is None:
        raise SourceUnavailable(f"Row id={record_id} has no parseable created_at: {row.get('created_at')!r}")
    return Record(id=record_id, created_at=created_at, fields=dict(row))


def _ensure_ascending(records: list[Record]) -> list[Record]:
    """Return records sorted by created_at; a stable no-op when already ordered."""
    in_order = all(
        earlier.created_at <= later.created_at for earlier, later in zip(records, records[1:])
    )
    if in_order:
        return records
    LOGGER.warning("Store returned rows out of created_at order; re-sorting before grouping")
    return sorted(records, key=lambda record: record.created_at)


def _parse_datetime(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None

    # PostgREST returns RFC3339 timestamps, occasionally with a trailing Z.
    value = raw.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _in_filter(ids: Sequence[str]) -> str:
    quoted = ",".join('"' + str(value).replace('"', '\\"') + '"' for value in ids)
    return f"in.({quoted})"


def _first_env(names: Sequence[str]) -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    raise RuntimeError(f"{names[0]} environment variable is required")


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_body(exc: requests.RequestException) -> str:
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        try:
            return json.dumps(exc.response.json())
        except ValueError:
            return exc.response.text
    return ""


def _request_with_backoff(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    params: dict[str, str],
) -> requests.Response:
    """Send a read request with simple exponential backoff for rate limits."""
    delay_seconds = 1.0
    last_error: Exception | None = None

    for attempt in range(1, MAX_RETRIES + 1):
        try:
            response = requests.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            if response.status_code == 429 and attempt < MAX_RETRIES:
                time.sleep(delay_seconds)
                delay_seconds *= 2
                continue
            response.raise_for_status()
            return response
        except requests.RequestException as exc:
            last_error = exc
            if attempt >= MAX_RETRIES:
                break
            time.sleep(delay_seconds)
            delay_seconds *= 2

    response_text = _error_body(last_error) if isinstance(last_error, requests.RequestException) else ""
    raise RuntimeError(f"Supabase request failed after retries: {last_error} {response_text}".strip())
