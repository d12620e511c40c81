"""Reconciliation of incoming records against an existing snapshot.

Every function here is pure: it receives a read-only snapshot of existing
records and returns a :class:`~rideshare_import.models.ReconcileOutcome`
describing the final record set plus the deletions and upserts that produce
it. Applying that write-back in one committed step is the job of
:mod:`rideshare_import.persistence`.

Duplicate keys per record kind:

- shifts: calendar day of ``start_at`` and ``odometer_start``;
- expenses: day, category and description;
- statement transactions: the statement period identifier (whole-statement
  granularity), or :func:`transaction_key` for row-level merges.

Tips and toll reimbursements exist both as manual entries and as imported
totals. :func:`apply_imported_totals` keeps the manual value in the shift's
``original_*`` slot the first time an import overwrites it and reports a
:class:`~rideshare_import.errors.ReconciliationConflict` when that manual
value is higher than the import. :func:`resolve_conflict` settles one
conflict either way.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import Any, Protocol

from .aggregation import totals_by_shift
from .errors import ReconciliationConflict
from .logging_setup import get_logger
from .models import (
    ConflictChoice,
    Expense,
    MergeDecision,
    ReconcileCounts,
    ReconcileOutcome,
    Shift,
    ShiftMatch,
    Transaction,
)

_log = get_logger("rideshare_import.reconcile")

# Differences below one cent are rounding noise, not disagreements.
CENT = Decimal("0.01")

# Shift fields fed by both manual entry and statement import, with the slot
# that preserves the manual value.
DUAL_SOURCE_FIELDS: dict[str, str] = {
    "tips": "original_tips",
    "tolls_reimbursed": "original_tolls_reimbursed",
}


class _Record(Protocol):
    @property
    def id(self) -> Any: ...


# ---------------------------------------------------------------------------
# Duplicate keys
# ---------------------------------------------------------------------------


def shift_key(shift: Shift) -> Hashable:
    return (shift.start_at.date(), shift.odometer_start)


def expense_key(expense: Expense) -> Hashable:
    return (expense.date, expense.category, expense.description.strip())


def statement_period_key(tx: Transaction) -> Hashable:
    return tx.statement_period


def transaction_key(tx: Transaction) -> Hashable:
    """Row identity inside a statement: posting time, label and amount."""

    return (tx.statement_period, tx.posted_at, tx.label, tx.amount.quantize(CENT))


def _adopt_identity[R: _Record](existing: R, incoming: R) -> R:
    return replace(incoming, id=existing.id)  # type: ignore[type-var]


# ---------------------------------------------------------------------------
# Generic merge
# ---------------------------------------------------------------------------


def reconcile[R: _Record](
    incoming: Iterable[R],
    existing: Sequence[R],
    decision: MergeDecision,
    *,
    key: Callable[[R], Hashable],
    merge: Callable[[R, R], R] = _adopt_identity,
) -> ReconcileOutcome[R]:
    """Merge ``incoming`` into ``existing`` under ``decision``.

    - ``REPLACE_ALL``: every existing record is discarded and every incoming
      record inserted.
    - ``ADD_MISSING_ONLY``: incoming records whose key matches an existing
      record are skipped; the rest are inserted.
    - ``MERGE_AND_UPDATE``: a matching existing record takes the incoming
      values (``merge`` decides how; by default the incoming record adopts
      the existing id); unmatched incoming records are inserted.

    When several existing records share a key the first one in ``existing``
    is the match.
    """

    batch = list(incoming)
    counts = ReconcileCounts()

    if decision is MergeDecision.REPLACE_ALL:
        counts.added = len(batch)
        counts.removed = len(existing)
        return ReconcileOutcome(
            records=tuple(batch),
            counts=counts,
            to_delete=tuple(r.id for r in existing),
            to_upsert=tuple(batch),
        )

    index: dict[Hashable, int] = {}
    for pos, record in enumerate(existing):
        index.setdefault(key(record), pos)

    records: list[R] = list(existing)
    upserts: list[R] = []
    for record in batch:
        pos = index.get(key(record))
        if pos is None:
            records.append(record)
            upserts.append(record)
            counts.added += 1
        elif decision is MergeDecision.ADD_MISSING_ONLY:
            counts.skipped += 1
        else:
            merged = merge(records[pos], record)
            records[pos] = merged
            upserts.append(merged)
            counts.updated += 1

    return ReconcileOutcome(records=tuple(records), counts=counts, to_upsert=tuple(upserts))


def replace_statement_period(
    incoming: Iterable[Transaction],
    existing: Sequence[Transaction],
    period_label: str,
) -> ReconcileOutcome[Transaction]:
    """Swap every stored transaction of ``period_label`` for ``incoming``.

    An empty ``incoming`` batch still removes the whole period.
    """

    batch = list(incoming)
    stray = [tx for tx in batch if tx.statement_period != period_label]
    if stray:
        raise ValueError(
            f"{len(stray)} incoming transaction(s) do not belong to period {period_label!r}"
        )

    removed = [tx for tx in existing if tx.statement_period == period_label]
    kept = [tx for tx in existing if tx.statement_period != period_label]
    counts = ReconcileCounts(added=len(batch), removed=len(removed))
    return ReconcileOutcome(
        records=tuple(kept + batch),
        counts=counts,
        to_delete=tuple(tx.id for tx in removed),
        to_upsert=tuple(batch),
    )


def _merge_transaction(existing: Transaction, incoming: Transaction) -> Transaction:
    owner = incoming.owner_shift_id or existing.owner_shift_id
    return replace(incoming, id=existing.id, owner_shift_id=owner)


def reconcile_transactions(
    incoming: Iterable[Transaction],
    existing: Sequence[Transaction],
    decision: MergeDecision,
    *,
    period_label: str,
) -> ReconcileOutcome[Transaction]:
    """Apply a merge policy to one statement's transactions.

    ``REPLACE_ALL`` replaces the period; ``ADD_MISSING_ONLY`` skips the whole
    batch when the period was imported before; ``MERGE_AND_UPDATE`` updates
    rows matching :func:`transaction_key` and adds the rest.
    """

    if decision is MergeDecision.REPLACE_ALL:
        return replace_statement_period(incoming, existing, period_label)
    if decision is MergeDecision.ADD_MISSING_ONLY:
        return reconcile(incoming, existing, decision, key=statement_period_key)
    return reconcile(
        incoming, existing, decision, key=transaction_key, merge=_merge_transaction
    )


# ---------------------------------------------------------------------------
# Manual vs imported values
# ---------------------------------------------------------------------------


def _conflict_for(shift: Shift, field: str) -> ReconciliationConflict | None:
    manual = getattr(shift, DUAL_SOURCE_FIELDS[field])
    imported = getattr(shift, field)
    if manual is None:
        return None
    imported = imported if imported is not None else Decimal("0")
    # Only a manual value above the import is a conflict; an import at or
    # above the manual entry confirms it.
    if manual - imported > CENT:
        return ReconciliationConflict(
            shift_id=shift.id, field=field, manual=manual, imported=imported
        )
    return None


def pending_conflicts(shifts: Iterable[Shift]) -> list[ReconciliationConflict]:
    """Conflicts recorded on shifts the user has not verified yet."""

    found: list[ReconciliationConflict] = []
    for shift in shifts:
        if shift.user_verified:
            continue
        for field in DUAL_SOURCE_FIELDS:
            conflict = _conflict_for(shift, field)
            if conflict is not None:
                found.append(conflict)
    return found


def apply_imported_totals(
    shifts: Sequence[Shift], matches: Iterable[ShiftMatch]
) -> ReconcileOutcome[Shift]:
    """Write imported tips and toll reimbursements onto matched shifts.

    The manual value is copied into ``original_*`` only the first time an
    import overwrites it; later imports keep that slot. A shift with a new
    conflict loses its ``user_verified`` mark.
    """

    per_shift = totals_by_shift(matches)
    counts = ReconcileCounts()
    records: list[Shift] = []
    upserts: list[Shift] = []
    conflicts: list[ReconciliationConflict] = []

    for shift in shifts:
        imported = per_shift.get(shift.id)
        if imported is None:
            records.append(shift)
            continue

        changes: dict[str, Any] = {
            "tips": imported.tips,
            "tolls_reimbursed": imported.tolls_reimbursed,
        }
        for field, original_field in DUAL_SOURCE_FIELDS.items():
            current = getattr(shift, field)
            if getattr(shift, original_field) is None and current is not None:
                changes[original_field] = current

        updated = replace(shift, **changes)
        found = [c for f in DUAL_SOURCE_FIELDS if (c := _conflict_for(updated, f)) is not None]
        if found:
            updated = replace(updated, user_verified=False)
            conflicts.extend(found)
            for c in found:
                _log.info(
                    "shift %s: manual %s %s exceeds imported %s",
                    c.shift_id,
                    c.field,
                    c.manual,
                    c.imported,
                )

        records.append(updated)
        upserts.append(updated)
        counts.updated += 1

    missing = set(per_shift) - {s.id for s in shifts}
    if missing:
        _log.warning("%d matched shift id(s) not in the snapshot; skipped", len(missing))
        counts.skipped += len(missing)

    return ReconcileOutcome(
        records=tuple(records),
        counts=counts,
        to_upsert=tuple(upserts),
        conflicts=tuple(conflicts),
    )


def resolve_conflict(
    shift: Shift, conflict: ReconciliationConflict, choice: ConflictChoice
) -> Shift:
    """Settle one manual-vs-imported conflict.

    ``KEEP_MANUAL`` restores the manual value and discards the imported one;
    ``ACCEPT_IMPORTED`` keeps the imported value and discards the manual one.
    The shift counts as verified once no conflict remains on it.
    """

    if conflict.shift_id != shift.id:
        raise ValueError(f"conflict belongs to shift {conflict.shift_id}, not {shift.id}")
    if conflict.field not in DUAL_SOURCE_FIELDS:
        raise ValueError(f"not a dual-source field: {conflict.field!r}")

    original_field = DUAL_SOURCE_FIELDS[conflict.field]
    if choice is ConflictChoice.KEEP_MANUAL:
        resolved = replace(shift, **{conflict.field: conflict.manual})
    else:
        resolved = replace(
            shift, **{conflict.field: conflict.imported, original_field: conflict.imported}
        )
    remaining = [f for f in DUAL_SOURCE_FIELDS if _conflict_for(resolved, f) is not None]
    return replace(resolved, user_verified=not remaining)


__all__ = [
    "CENT",
    "DUAL_SOURCE_FIELDS",
    "shift_key",
    "expense_key",
    "statement_period_key",
    "transaction_key",
    "reconcile",
    "replace_statement_period",
    "reconcile_transactions",
    "pending_conflicts",
    "apply_imported_totals",
    "resolve_conflict",
]
