# ruff: noqa: E402, I001
from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `rideshare_import` is importable
_ROOT = Path(__file__).resolve().parents[2]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from rideshare_import.api import import_statement  # noqa: E402
from rideshare_import.errors import DocumentStructureFailure  # noqa: E402
from rideshare_import.models import MergeDecision, Shift  # noqa: E402

from tests.helpers.db import stored_shifts, stored_transactions  # noqa: E402

PERIOD = "Aug 4, 2025 - Aug 11, 2025"


def _by_id(shifts: list[Shift]) -> dict:
    return {s.id: s for s in shifts}


def test_e2e_import_statement_from_csv_persists_expected(
    statement_csv: Path, database_url: str, week_shifts: tuple[Shift, Shift]
):
    friday, saturday = week_shifts
    progress: list[str] = []

    # -------------------------
    # First import
    # -------------------------
    report = import_statement(statement_csv, database_url=database_url, on_progress=progress.append)

    assert report.committed is True
    assert report.period.label == PERIOD
    assert len(report.parse.transactions) == 7
    assert report.parse.failures == ()
    assert progress[0] == f"Parsed 7 transaction(s) for {PERIOD}."
    assert progress[1] == "Matched 4 transaction(s) to shifts; 2 without a shift."

    stored = stored_transactions(database_url, period_label=PERIOD)
    assert len(stored) == 7
    owners = [t.owner_shift_id for t in stored]
    assert owners == [friday.id, friday.id, friday.id, saturday.id, None, None, None]
    assert [t.label for t in stored if t.needs_manual_verification] == [
        "Quest",
        "Transferred to bank account",
    ]

    shifts = _by_id(stored_shifts(database_url))
    assert shifts[friday.id].tips == Decimal("3.00")
    assert shifts[friday.id].original_tips == Decimal("5.00")
    assert shifts[friday.id].tolls_reimbursed == Decimal("2.00")
    assert shifts[friday.id].user_verified is False
    assert shifts[saturday.id].tips == Decimal("0.00")
    assert shifts[saturday.id].original_tips is None

    (conflict,) = report.conflicts
    assert conflict.shift_id == friday.id
    assert conflict.field == "tips"
    assert (conflict.manual, conflict.imported) == (Decimal("5.00"), Decimal("3.00"))

    assert report.missing_shifts_csv().count("\n") == 2  # header + one day

    # -------------------------
    # Re-import replaces the whole period
    # -------------------------
    again = import_statement(statement_csv, database_url=database_url)

    assert again.transactions.counts.as_dict() == {
        "added": 7,
        "updated": 0,
        "skipped": 0,
        "removed": 7,
    }
    restored = stored_transactions(database_url, period_label=PERIOD)
    assert len(restored) == 7
    assert {t.id for t in restored}.isdisjoint({t.id for t in stored})
    # The manual value captured by the first import is kept.
    assert _by_id(stored_shifts(database_url))[friday.id].original_tips == Decimal("5.00")

    # -------------------------
    # Add-missing leaves a known period alone
    # -------------------------
    skipped = import_statement(
        statement_csv, database_url=database_url, decision=MergeDecision.ADD_MISSING_ONLY
    )

    assert skipped.transactions.counts.skipped == 7
    assert {t.id for t in stored_transactions(database_url)} == {t.id for t in restored}


def test_e2e_boundary_offset_comes_from_the_environment(
    statement_csv: Path,
    database_url: str,
    week_shifts: tuple[Shift, Shift],
    monkeypatch: pytest.MonkeyPatch,
):
    # Without a grace window the 11:40 PM ride after Friday's 11:30 PM end is orphaned.
    monkeypatch.setenv("RIDESHARE_BOUNDARY_OFFSET_MINUTES", "0")

    report = import_statement(statement_csv, database_url=database_url, dry_run=True)

    assert len(report.match.matched) == 3
    assert len(report.unmatched) == 3
    assert stored_transactions(database_url) == []


def test_e2e_unreadable_statement_touches_nothing(
    tmp_path: Path, database_url: str, week_shifts: tuple[Shift, Shift]
):
    bogus = tmp_path / "statement.csv"
    bogus.write_text("Date,Amount\n2025-08-09,15.00\n", encoding="utf-8")

    with pytest.raises(DocumentStructureFailure):
        import_statement(bogus, database_url=database_url)

    assert stored_transactions(database_url) == []
    assert stored_shifts(database_url) == list(week_shifts)
