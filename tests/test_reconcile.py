from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from rideshare_import.api import reconcile as api_reconcile
from rideshare_import.models import Expense, ExpenseCategory, MergeDecision, Shift, Transaction
from rideshare_import.reconcile import (
    reconcile,
    reconcile_transactions,
    replace_statement_period,
    shift_key,
)

AUG = "Aug 4, 2025 - Aug 11, 2025"
JUL = "Jul 28, 2025 - Aug 4, 2025"
STAMP = datetime(2025, 8, 12, tzinfo=UTC)


def _tx(period: str, hour: int, *, amount: str = "10.00", label: str = "UberX") -> Transaction:
    return Transaction(
        posted_at=datetime(2025, 8, 8, hour, 0),
        label=label,
        amount=Decimal(amount),
        statement_period=period,
        imported_at=STAMP,
    )


def _shift(day: int, odometer: str = "1000.0", **kwargs) -> Shift:
    return Shift(
        start_at=datetime(2025, 8, day, 18, 0),
        end_at=datetime(2025, 8, day, 23, 0),
        odometer_start=Decimal(odometer),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Statement transactions
# ---------------------------------------------------------------------------


def test_replace_all_leaves_no_record_from_the_old_batch():
    old = [_tx(AUG, 10), _tx(AUG, 11), _tx(AUG, 12)]
    other = _tx(JUL, 9)
    incoming = [_tx(AUG, 10), _tx(AUG, 13)]

    outcome = reconcile_transactions(
        incoming, old + [other], MergeDecision.REPLACE_ALL, period_label=AUG
    )

    ids = {r.id for r in outcome.records}
    assert ids.isdisjoint({t.id for t in old})
    assert ids == {other.id} | {t.id for t in incoming}
    assert set(outcome.to_delete) == {t.id for t in old}
    assert outcome.counts.as_dict() == {"added": 2, "updated": 0, "skipped": 0, "removed": 3}


def test_replace_all_with_empty_batch_clears_the_period():
    old = [_tx(AUG, 10), _tx(AUG, 11)]
    other = _tx(JUL, 9)

    outcome = reconcile_transactions([], old + [other], MergeDecision.REPLACE_ALL, period_label=AUG)

    assert outcome.records == (other,)
    assert outcome.counts.removed == 2
    assert outcome.to_upsert == ()


def test_replace_statement_period_rejects_foreign_rows():
    with pytest.raises(ValueError):
        replace_statement_period([_tx(JUL, 9)], [], AUG)


def test_add_missing_against_empty_store_adds_everything():
    incoming = [_tx(AUG, 10), _tx(AUG, 11)]

    outcome = reconcile_transactions(incoming, [], MergeDecision.ADD_MISSING_ONLY, period_label=AUG)

    assert outcome.counts.added == 2
    assert outcome.counts.skipped == 0
    assert outcome.to_upsert == tuple(incoming)


def test_add_missing_skips_a_period_imported_before():
    existing = [_tx(AUG, 10)]
    incoming = [_tx(AUG, 10), _tx(AUG, 11)]

    outcome = reconcile_transactions(
        incoming, existing, MergeDecision.ADD_MISSING_ONLY, period_label=AUG
    )

    assert outcome.counts.skipped == 2
    assert outcome.counts.added == 0
    assert outcome.records == tuple(existing)
    assert outcome.to_upsert == ()


def test_merge_updates_matching_rows_and_keeps_owner():
    owner = uuid4()
    existing = [_tx(AUG, 10).assigned_to(owner), _tx(AUG, 11)]
    revised = replace(_tx(AUG, 10), id=uuid4(), needs_manual_verification=True)
    new_row = _tx(AUG, 14)

    outcome = reconcile_transactions(
        [revised, new_row], existing, MergeDecision.MERGE_AND_UPDATE, period_label=AUG
    )

    assert outcome.counts.updated == 1
    assert outcome.counts.added == 1
    merged = outcome.records[0]
    assert merged.id == existing[0].id
    assert merged.owner_shift_id == owner
    assert merged.needs_manual_verification is True
    assert outcome.records[1] is existing[1]
    assert outcome.records[2] is new_row


# ---------------------------------------------------------------------------
# Generic records
# ---------------------------------------------------------------------------


def test_merge_keeps_existing_shift_ids():
    existing = [_shift(8, tips=Decimal("5.00"))]
    incoming = [_shift(8, tips=Decimal("7.00")), _shift(9)]

    outcome = reconcile(incoming, existing, MergeDecision.MERGE_AND_UPDATE, key=shift_key)

    assert outcome.records[0].id == existing[0].id
    assert outcome.records[0].tips == Decimal("7.00")
    assert outcome.records[1].id == incoming[1].id
    assert outcome.counts.as_dict() == {"added": 1, "updated": 1, "skipped": 0, "removed": 0}


def test_shift_key_uses_start_day_and_odometer():
    morning = replace(_shift(8), start_at=datetime(2025, 8, 8, 6, 0))
    assert shift_key(morning) == shift_key(_shift(8))
    assert shift_key(_shift(8, "1000.5")) != shift_key(_shift(8))


def test_first_existing_record_wins_on_duplicate_keys():
    first, second = _shift(8), _shift(8)
    incoming = _shift(8, tips=Decimal("3.00"))

    outcome = reconcile([incoming], [first, second], MergeDecision.MERGE_AND_UPDATE, key=shift_key)

    assert outcome.records[0].id == first.id
    assert outcome.records[1] is second


def test_replace_all_for_generic_records():
    existing = [_shift(8), _shift(9)]
    incoming = [_shift(10)]

    outcome = reconcile(incoming, existing, MergeDecision.REPLACE_ALL, key=shift_key)

    assert outcome.records == tuple(incoming)
    assert set(outcome.to_delete) == {s.id for s in existing}


def test_api_reconcile_picks_the_expense_key():
    existing = [
        Expense(
            date=date(2025, 8, 8),
            category=ExpenseCategory.VEHICLE,
            description="Car wash",
            amount=Decimal("12.00"),
        )
    ]
    incoming = [
        Expense(
            date=date(2025, 8, 8),
            category=ExpenseCategory.VEHICLE,
            description="Car wash ",
            amount=Decimal("14.00"),
        ),
        Expense(
            date=date(2025, 8, 8),
            category=ExpenseCategory.SUPPLIES,
            description="Car wash",
            amount=Decimal("3.00"),
        ),
    ]

    outcome = api_reconcile(incoming, existing, MergeDecision.ADD_MISSING_ONLY)

    assert outcome.counts.skipped == 1
    assert outcome.counts.added == 1


def test_api_reconcile_replace_all_keeps_other_periods():
    july = _tx(JUL, 1)
    stale = _tx(AUG, 2)
    fresh = _tx(AUG, 3)

    outcome = api_reconcile([fresh], [july, stale], MergeDecision.REPLACE_ALL)

    assert outcome.records == (july, fresh)
    assert outcome.to_delete == (stale.id,)
    assert outcome.counts.removed == 1


def test_api_reconcile_merge_keeps_each_statement_row():
    existing = [_tx(AUG, 10), _tx(AUG, 11), _tx(AUG, 12)]
    revised = [replace(t, id=uuid4(), needs_manual_verification=True) for t in existing]

    outcome = api_reconcile(revised, existing, MergeDecision.MERGE_AND_UPDATE)

    assert outcome.counts.updated == 3
    assert [r.id for r in outcome.records] == [t.id for t in existing]
    assert len({r.id for r in outcome.to_upsert}) == 3
    assert all(r.needs_manual_verification for r in outcome.records)


def test_api_reconcile_empty_transaction_batch_needs_a_period():
    existing = [_tx(AUG, 10), _tx(JUL, 9)]

    with pytest.raises(ValueError, match="period_label"):
        api_reconcile([], existing, MergeDecision.REPLACE_ALL)

    outcome = api_reconcile([], existing, MergeDecision.REPLACE_ALL, period_label=AUG)
    assert outcome.records == (existing[1],)
