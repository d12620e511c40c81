# ruff: noqa: I001
"""Persistence integration for rideshare_import.

Functions here read snapshots from, and write reconcile outcomes to, the
shared database owned by ``libs/db``. They rely on the SQLAlchemy ORM models
in ``db.models.rideshare`` and on sessions provided by ``db.client``.

Scope:
- Load shifts, expenses and statement transactions as domain values.
- Apply one or more :class:`~rideshare_import.models.ReconcileOutcome` write
  sets (deletions, then upserts) inside a single committed transaction.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.rideshare import RsExpense, RsShift, RsUberTransaction
from .errors import PersistenceError
from .logging_setup import get_logger
from .models import Expense, ExpenseCategory, ReconcileOutcome, Shift, Transaction

_log = get_logger("rideshare_import.persistence")

_SHIFT_FIELDS = (
    "id",
    "start_at",
    "end_at",
    "odometer_start",
    "odometer_end",
    "trips",
    "net_fare",
    "tips",
    "promotions",
    "tolls",
    "tolls_reimbursed",
    "parking_fees",
    "misc_fees",
    "original_tips",
    "original_tolls_reimbursed",
    "user_verified",
)

_TRANSACTION_FIELDS = (
    "id",
    "statement_period",
    "posted_at",
    "event_at",
    "label",
    "amount",
    "secondary_amount",
    "needs_manual_verification",
    "owner_shift_id",
    "source_row_index",
    "imported_at",
)


# ---------------------------------------------------------------------------
# Row <-> value mapping
# ---------------------------------------------------------------------------


def shift_from_row(row: RsShift) -> Shift:
    return Shift(**{f: getattr(row, f) for f in _SHIFT_FIELDS})


def transaction_from_row(row: RsUberTransaction) -> Transaction:
    return Transaction(**{f: getattr(row, f) for f in _TRANSACTION_FIELDS})


def expense_from_row(row: RsExpense) -> Expense:
    return Expense(
        id=row.id,
        date=row.date,
        category=ExpenseCategory(row.category),
        description=row.description,
        amount=row.amount,
    )


def _to_row(record: Any) -> RsShift | RsExpense | RsUberTransaction:
    if isinstance(record, Shift):
        values = {f: getattr(record, f) for f in _SHIFT_FIELDS}
        return RsShift(**values, updated_at=datetime.now(UTC))
    if isinstance(record, Transaction):
        return RsUberTransaction(**{f: getattr(record, f) for f in _TRANSACTION_FIELDS})
    if isinstance(record, Expense):
        return RsExpense(
            id=record.id,
            date=record.date,
            category=record.category.value,
            description=record.description,
            amount=record.amount,
        )
    raise TypeError(f"cannot persist {type(record).__name__}")


_MODEL_FOR: dict[type, type] = {
    Shift: RsShift,
    Expense: RsExpense,
    Transaction: RsUberTransaction,
}


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def load_shifts(session: Session) -> list[Shift]:
    rows = session.scalars(select(RsShift).order_by(RsShift.start_at, RsShift.id))
    return [shift_from_row(r) for r in rows]


def load_expenses(session: Session) -> list[Expense]:
    rows = session.scalars(select(RsExpense).order_by(RsExpense.date, RsExpense.id))
    return [expense_from_row(r) for r in rows]


def load_transactions(session: Session, *, period_label: str | None = None) -> list[Transaction]:
    stmt = select(RsUberTransaction)
    if period_label is not None:
        stmt = stmt.where(RsUberTransaction.statement_period == period_label)
    stmt = stmt.order_by(
        RsUberTransaction.statement_period,
        RsUberTransaction.source_row_index,
        RsUberTransaction.id,
    )
    return [transaction_from_row(r) for r in session.scalars(stmt)]


def save_shifts(session: Session, shifts: Iterable[Shift]) -> int:
    count = 0
    for shift in shifts:
        session.merge(_to_row(shift))
        count += 1
    return count


# ---------------------------------------------------------------------------
# Committed write-back
# ---------------------------------------------------------------------------


def write_outcome(session: Session, kind: type, outcome: ReconcileOutcome[Any]) -> None:
    """Stage one outcome on ``session``: deletions first, then upserts."""

    model = _MODEL_FOR[kind]
    if outcome.to_delete:
        session.execute(delete(model).where(model.id.in_(list(outcome.to_delete))))
    for record in outcome.to_upsert:
        session.merge(_to_row(record))
    session.flush()


def apply_outcomes(
    outcomes: Sequence[tuple[type, ReconcileOutcome[Any]]],
    *,
    database_url: str | None = None,
) -> None:
    """Apply every outcome in order inside one committed transaction.

    Any failure rolls the whole step back and surfaces as
    :class:`PersistenceError`; nothing partial is ever visible.
    """

    try:
        with session_scope(database_url=database_url) as session:
            for kind, outcome in outcomes:
                write_outcome(session, kind, outcome)
                _log.debug(
                    "%s: staged %d delete(s), %d upsert(s)",
                    kind.__name__,
                    len(outcome.to_delete),
                    len(outcome.to_upsert),
                )
    except SQLAlchemyError as exc:
        _log.error("write-back failed; rolled back: %s", exc)
        raise PersistenceError(f"could not persist import: {exc}") from exc


def apply_outcome(
    kind: type, outcome: ReconcileOutcome[Any], *, database_url: str | None = None
) -> None:
    apply_outcomes([(kind, outcome)], database_url=database_url)


__all__ = [
    "shift_from_row",
    "expense_from_row",
    "transaction_from_row",
    "load_shifts",
    "load_expenses",
    "load_transactions",
    "save_shifts",
    "write_outcome",
    "apply_outcomes",
    "apply_outcome",
]
