from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from analysis import analyze_records, loose_key_from_env, render_analysis
from composite_key import KeyDefinition
from conftest import T0, make_record

EXACT = KeyDefinition()
LOOSE = KeyDefinition(fields=("contributor_name", "card_name"))


def _records() -> list:
    return [
        make_record(1, minutes=0, quantity=1, deck_filename="a.txt"),
        make_record(2, minutes=1, quantity=2, deck_filename="b.txt"),
        make_record(3, minutes=2, quantity=1, deck_filename="a.txt"),
        make_record(4, minutes=3, card_name="Opt", quantity=4),
        make_record(5, minutes=4, card_name="Opt", quantity="x"),
        make_record(6, minutes=5, contributor_name="Bob", card_name="Opt"),
        make_record(7, minutes=6, contributor_name="Carol", card_name="Opt", quantity=3),
        make_record(8, minutes=7, contributor_name="Carol", card_name="Opt", quantity=3),
    ]


def test_loose_groups_ranked_by_upload_count() -> None:
    report = analyze_records(_records(), EXACT, LOOSE, now=T0 + timedelta(days=10))

    assert [stats.group.key for stats in report.loose_duplicates] == [
        ("Alice", "Sol Ring"),
        ("Alice", "Opt"),
        ("Carol", "Opt"),
    ]
    assert [stats.upload_count for stats in report.loose_duplicates] == [3, 2, 2]
    assert report.loose_duplicates[0].total_quantity == 4
    assert report.loose_duplicates[1].total_quantity == 4


def test_statistics() -> None:
    report = analyze_records(_records(), EXACT, LOOSE, now=T0 + timedelta(days=10))

    assert report.total_records == 8
    assert report.unique_loose_combinations == 4
    assert report.total_duplicate_entries == 4
    assert report.malformed == 0


def test_exact_duplicate_sets() -> None:
    report = analyze_records(_records(), EXACT, LOOSE, now=T0 + timedelta(days=10))

    exact_ids = [[member.id for member in group.members] for group in report.exact_duplicates]
    assert exact_ids == [["1", "3"], ["7", "8"]]


def test_recent_window() -> None:
    now = T0 + timedelta(minutes=6, hours=24)

    report = analyze_records(_records(), EXACT, LOOSE, now=now, recent_window=timedelta(hours=24))

    assert [stats.group.key for stats in report.recent_duplicates] == [("Carol", "Opt")]


def test_render_analysis_mentions_each_section() -> None:
    report = analyze_records(_records(), EXACT, LOOSE, now=T0 + timedelta(minutes=10))

    text = render_analysis(report)

    assert "Found 3 duplicate sets by contributor_name + card_name:" in text
    assert "Total quantity: 4" in text
    assert "Found 2 sets of exact duplicates" in text
    assert "Recent duplicates (last 24 hours): 3" in text


def test_render_analysis_with_no_duplicates() -> None:
    report = analyze_records([make_record(1)], EXACT, LOOSE, now=T0)
    text = render_analysis(report)
    assert "No duplicate sets by contributor_name + card_name." in text
    assert "No exact duplicates" in text


def test_loose_key_inherits_normalization(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEDUP_KEY_CASE_SENSITIVE", "false")
    monkeypatch.setenv("DEDUP_LOOSE_FIELDS", "contributor_name")

    key_def = loose_key_from_env()

    assert key_def.fields == ("contributor_name",)
    assert key_def.case_sensitive is False


def test_malformed_record_logged_once(caplog: pytest.LogCaptureFixture) -> None:
    records = _records() + [make_record("broken", minutes=9, contributor_name=None)]

    with caplog.at_level(logging.WARNING):
        report = analyze_records(records, EXACT, LOOSE, now=T0)

    assert report.malformed == 1
    assert caplog.text.count("Record id=broken") == 1
