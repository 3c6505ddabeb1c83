"""Tests for the remove-duplicates and analyze-duplicates CLIs."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import analyze_duplicates
import main
from composite_key import KeyDefinition
from conftest import FakeStore, make_record
from errors import SourceUnavailable
from models import RunMode


def _store() -> FakeStore:
    return FakeStore([make_record("keep", minutes=0), make_record("dup", minutes=1)])


def test_parse_args_defaults_to_dry_run(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DEDUP_BATCH_SIZE", raising=False)
    monkeypatch.delenv("DEDUP_TABLE", raising=False)

    args = main.parse_args([])

    assert args.execute is False
    assert args.batch_size == 10
    assert args.table == "gathered_cards"


def test_parse_args_execute_and_overrides() -> None:
    args = main.parse_args(["--execute", "--batch-size", "5", "--table", "monetary_donations"])
    assert args.execute is True
    assert args.batch_size == 5
    assert args.table == "monetary_donations"


def test_parse_args_rejects_both_modes() -> None:
    with pytest.raises(SystemExit):
        main.parse_args(["--execute", "--dry-run"])


def test_parse_args_rejects_zero_batch_size() -> None:
    with pytest.raises(SystemExit):
        main.parse_args(["--batch-size", "0"])


def test_run_dry_run_prints_plan_without_deleting(capsys: pytest.CaptureFixture[str]) -> None:
    store = _store()

    with patch("main.SupabaseTable.from_env", return_value=store):
        code = main.run("gathered_cards", KeyDefinition(), RunMode.DRY_RUN, batch_size=10)

    assert code == 0
    assert store.delete_calls == []
    out = capsys.readouterr().out
    assert "[DRY RUN]" in out
    assert "(ID: dup)" in out


def test_run_execute_deletes_and_writes_plan(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = _store()
    plan = tmp_path / "plan.csv"

    with patch("main.SupabaseTable.from_env", return_value=store):
        code = main.run("gathered_cards", KeyDefinition(), RunMode.EXECUTE, batch_size=10, plan_csv=str(plan))

    assert code == 0
    assert store.delete_calls == [("dup",)]
    assert plan.exists()
    assert "Totals: attempted=1 deleted=1 failed_remaining=0" in capsys.readouterr().out


def test_run_plan_csv_failure_still_prints_totals(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = _store()
    unwritable = tmp_path / "missing_dir" / "plan.csv"

    with patch("main.SupabaseTable.from_env", return_value=store):
        code = main.run("gathered_cards", KeyDefinition(), RunMode.EXECUTE, batch_size=10, plan_csv=str(unwritable))

    assert code == 0
    assert store.delete_calls == [("dup",)]
    assert not unwritable.exists()
    assert "Totals: attempted=1 deleted=1 failed_remaining=0" in capsys.readouterr().out


def test_run_source_unavailable_prints_no_summary(capsys: pytest.CaptureFixture[str]) -> None:
    source = MagicMock()
    source.fetch_all.side_effect = SourceUnavailable("store down")

    with patch("main.SupabaseTable.from_env", return_value=source):
        code = main.run("gathered_cards", KeyDefinition(), RunMode.EXECUTE, batch_size=10)

    assert code == 1
    assert capsys.readouterr().out == ""
    source.delete_by_ids.assert_not_called()


def test_run_missing_credentials_exits_non_zero() -> None:
    with patch("main.SupabaseTable.from_env", side_effect=RuntimeError("SUPABASE_URL environment variable is required")):
        assert main.run("gathered_cards", KeyDefinition(), RunMode.DRY_RUN, batch_size=10) == 1


def test_main_passes_key_fields_and_mode() -> None:
    with patch("main.load_dotenv"), patch("main.run", return_value=0) as mock_run:
        code = main.main(["--execute", "--key-fields", "contributor_name,amount"])

    assert code == 0
    kwargs = mock_run.call_args.kwargs
    assert kwargs["mode"] is RunMode.EXECUTE
    assert kwargs["key_def"].fields == ("contributor_name", "amount")


def test_analyze_cli_prints_report(capsys: pytest.CaptureFixture[str]) -> None:
    with patch("analyze_duplicates.load_dotenv"), \
         patch("analyze_duplicates.SupabaseTable.from_env", return_value=_store()):
        code = analyze_duplicates.main([])

    assert code == 0
    assert "Summary statistics:" in capsys.readouterr().out


def test_analyze_cli_source_failure() -> None:
    source = MagicMock()
    source.fetch_all.side_effect = SourceUnavailable("store down")

    with patch("analyze_duplicates.load_dotenv"), \
         patch("analyze_duplicates.SupabaseTable.from_env", return_value=source):
        assert analyze_duplicates.main([]) == 1
