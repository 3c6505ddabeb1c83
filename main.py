"""CLI entrypoint for removing exact duplicate records from a Supabase table.

Dry run is the default; nothing is deleted without ``--execute``.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

from composite_key import KeyDefinition
from engine import run_deduplication
from errors import SourceUnavailable
from executor import DEFAULT_BATCH_SIZE
from models import RunMode
from report import render_run_summary, write_plan_csv
from supabase_store import SupabaseTable

DEFAULT_TABLE = "gathered_cards"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Find and remove exact duplicate records")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        dest="execute",
        action="store_false",
        help="Only report what would be deleted (default)",
    )
    mode.add_argument(
        "--execute",
        dest="execute",
        action="store_true",
        help="Permanently delete the duplicates",
    )
    parser.set_defaults(execute=False)
    parser.add_argument(
        "--table",
        default=os.getenv("DEDUP_TABLE", DEFAULT_TABLE),
        help="Table to deduplicate (default: DEDUP_TABLE or gathered_cards)",
    )
    parser.add_argument(
        "--key-fields",
        default=None,
        help="Comma-separated identity fields, in key order (default: DEDUP_KEY_FIELDS)",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=os.getenv("DEDUP_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)),
        help="Ids per delete request (default: 10)",
    )
    parser.add_argument(
        "--plan-csv",
        default=None,
        help="Also write the removal plan to this CSV file",
    )
    return parser.parse_args(argv)


def run(
    table: str,
    key_def: KeyDefinition,
    mode: RunMode,
    batch_size: int,
    plan_csv: str | None = None,
) -> int:
    """Run one cleanup pass and print its summary. Returns the process exit code."""
    if mode is RunMode.EXECUTE:
        logging.warning("Running in EXECUTE mode - duplicates will be permanently deleted")
    else:
        logging.info("Running in DRY RUN mode - no data will be deleted")

    try:
        store = SupabaseTable.from_env(table)
    except RuntimeError as exc:
        logging.error("Missing Supabase credentials: %s", exc)
        return 1

    try:
        summary = run_deduplication(store, store, key_def, mode=mode, batch_size=batch_size)
    except SourceUnavailable as exc:
        logging.error("Aborting, no records removed: %s", exc)
        return 1

    print(render_run_summary(summary, fields=key_def.fields))

    if plan_csv:
        try:
            write_plan_csv(plan_csv, summary.candidates)
        except OSError as exc:
            logging.warning("Plan CSV export failed (non-fatal): %s", exc)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the cleanup."""
    load_dotenv()
    load_dotenv(".env.local")
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    key_def = KeyDefinition.from_env(fields=args.key_fields)
    mode = RunMode.EXECUTE if args.execute else RunMode.DRY_RUN
    return run(
        table=args.table,
        key_def=key_def,
        mode=mode,
        batch_size=args.batch_size,
        plan_csv=args.plan_csv,
    )


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


if __name__ == "__main__":
    sys.exit(main())
