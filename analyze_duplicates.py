"""CLI: analyze duplicate contributions without deleting anything.

Usage examples
--------------
# Default table and keys:
python analyze_duplicates.py

# Loose grouping by contributor only, flag anything from the last 48 hours:
python analyze_duplicates.py --loose-fields contributor_name --recent-hours 48
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import UTC, datetime, timedelta

from dotenv import load_dotenv

from analysis import DEFAULT_RECENT_HOURS, analyze_records, loose_key_from_env, render_analysis
from composite_key import KeyDefinition
from errors import SourceUnavailable
from main import DEFAULT_TABLE
from supabase_store import SupabaseTable


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze duplicate records (read-only)")
    parser.add_argument("--table", default=os.getenv("DEDUP_TABLE", DEFAULT_TABLE))
    parser.add_argument("--key-fields", default=None, help="Exact duplicate key fields, comma-separated")
    parser.add_argument("--loose-fields", default=None, help="Loose grouping fields, comma-separated")
    parser.add_argument("--recent-hours", type=float, default=DEFAULT_RECENT_HOURS)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    load_dotenv(".env.local")
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    try:
        store = SupabaseTable.from_env(args.table)
        records = store.fetch_all()
    except (RuntimeError, SourceUnavailable) as exc:
        logging.error("Analysis aborted: %s", exc)
        return 1

    if not records:
        print(f"No records found in {args.table}.")
        return 0

    report = analyze_records(
        records,
        exact_key=KeyDefinition.from_env(fields=args.key_fields),
        loose_key=loose_key_from_env(fields=args.loose_fields),
        now=datetime.now(UTC),
        recent_window=timedelta(hours=args.recent_hours),
    )
    print(render_analysis(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
