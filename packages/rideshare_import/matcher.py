"""Assign parsed transactions to the shifts they were earned in.

A transaction's key timestamp (event time when known, posting time
otherwise) must fall inside a closed shift's window widened by a boundary
offset on both sides::

    [start_at - offset, end_at + offset]

Both ends are inclusive. When several windows contain the key, the shift
whose ``start_at`` is closest to it wins and equal distances go to the
lowest shift id. Candidates are sorted before evaluation, so the assignment
never depends on the order of the shift collection.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from .aggregation import categorize
from .errors import MatchAmbiguityWarning
from .logging_setup import get_logger
from .models import MatchResult, Shift, ShiftMatch, Transaction, TransactionCategory
from .settings import DEFAULT_BOUNDARY_OFFSET

_log = get_logger("rideshare_import.matcher")


def _windows(
    shifts: Iterable[Shift], offset: timedelta
) -> list[tuple[datetime, datetime, Shift]]:
    closed = [s for s in shifts if s.end_at is not None]
    closed.sort(key=lambda s: (s.start_at, str(s.id)))
    return [(s.start_at - offset, s.end_at + offset, s) for s in closed]  # type: ignore[operator]


def candidate_shifts(
    tx: Transaction,
    shifts: Sequence[Shift],
    *,
    boundary_offset: timedelta = DEFAULT_BOUNDARY_OFFSET,
) -> list[Shift]:
    """Every closed shift whose widened window contains the transaction key."""

    key = tx.effective_at
    return [s for lo, hi, s in _windows(shifts, boundary_offset) if lo <= key <= hi]


def _pick(key: datetime, candidates: Sequence[Shift]) -> Shift:
    return min(candidates, key=lambda s: (abs(s.start_at - key), str(s.id)))


def match_transactions(
    transactions: Iterable[Transaction],
    shifts: Iterable[Shift],
    *,
    boundary_offset: timedelta = DEFAULT_BOUNDARY_OFFSET,
) -> MatchResult:
    """Partition transactions into matched pairs and orphans.

    Bank transfers carry no earnings and are returned under ``ignored``.
    Transactions that already belong to a shift keep that owner. Matched
    transactions are returned as owned copies; inputs are not modified.
    """

    windows = _windows(shifts, boundary_offset)
    matched: list[ShiftMatch] = []
    unmatched: list[Transaction] = []
    ignored: list[Transaction] = []
    warnings: list[MatchAmbiguityWarning] = []

    for tx in transactions:
        if categorize(tx) is TransactionCategory.IGNORE:
            ignored.append(tx)
            continue
        if tx.owner_shift_id is not None:
            matched.append(ShiftMatch(shift_id=tx.owner_shift_id, transaction=tx))
            continue

        key = tx.effective_at
        candidates = [s for lo, hi, s in windows if lo <= key <= hi]
        if not candidates:
            unmatched.append(tx)
            continue

        chosen = _pick(key, candidates)
        if len(candidates) > 1:
            warning = MatchAmbiguityWarning(
                row_index=tx.source_row_index,
                transaction_id=tx.id,
                candidate_shift_ids=tuple(s.id for s in candidates),
                chosen_shift_id=chosen.id,
            )
            _log.warning("row %d: %s", warning.row_index, warning.message)
            warnings.append(warning)
        matched.append(ShiftMatch(shift_id=chosen.id, transaction=tx.assigned_to(chosen.id)))

    _log.info(
        "matched %d, unmatched %d, ignored %d transaction(s)",
        len(matched),
        len(unmatched),
        len(ignored),
    )
    return MatchResult(
        matched=tuple(matched),
        unmatched=tuple(unmatched),
        ignored=tuple(ignored),
        warnings=tuple(warnings),
    )


__all__ = ["candidate_shifts", "match_transactions"]
