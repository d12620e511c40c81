# ruff: noqa: I001
"""Workflow orchestrator for restoring a backup file.

Shifts and expenses are merged under the chosen
:class:`~rideshare_import.models.MergeDecision`; statement transactions are
always restored per statement period (the backup's copy of a period replaces
the stored one). All writes land in one committed step.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from os import PathLike
from uuid import UUID

from db.client import session_scope

from ..backup import read_backup
from ..logging_setup import get_logger
from ..models import (
    Expense,
    MergeDecision,
    ReconcileCounts,
    ReconcileOutcome,
    Shift,
    Transaction,
)
from ..persistence import apply_outcomes, load_expenses, load_shifts, load_transactions
from ..reconcile import expense_key, reconcile, replace_statement_period, shift_key

_log = get_logger("rideshare_import.workflows.restore_flow")


@dataclass(frozen=True, slots=True)
class RestoreReport:
    decision: MergeDecision
    shifts: ReconcileOutcome[Shift]
    expenses: ReconcileOutcome[Expense]
    transactions: ReconcileOutcome[Transaction]
    committed: bool

    def counts(self) -> dict[str, dict[str, int]]:
        return {
            "shifts": self.shifts.counts.as_dict(),
            "expenses": self.expenses.counts.as_dict(),
            "transactions": self.transactions.counts.as_dict(),
        }


def _shift_id_map(
    incoming: Iterable[Shift], existing: Sequence[Shift], decision: MergeDecision
) -> dict[UUID, UUID]:
    """Backup shift id → id the shift has after the restore."""

    if decision is MergeDecision.REPLACE_ALL:
        return {}
    by_key: dict[object, UUID] = {}
    for s in existing:
        by_key.setdefault(shift_key(s), s.id)
    return {s.id: by_key[shift_key(s)] for s in incoming if shift_key(s) in by_key}


def restore_transactions(
    incoming: Iterable[Transaction],
    existing: Sequence[Transaction],
    *,
    shift_ids: dict[UUID, UUID],
    valid_shift_ids: set[UUID],
) -> ReconcileOutcome[Transaction]:
    """Replace each statement period found in ``incoming``.

    Ownership links are rewritten through ``shift_ids`` and dropped when the
    owning shift does not exist after the restore.
    """

    by_period: dict[str, list[Transaction]] = defaultdict(list)
    for tx in incoming:
        owner = tx.owner_shift_id
        if owner is not None:
            owner = shift_ids.get(owner, owner)
            if owner not in valid_shift_ids:
                owner = None
        by_period[tx.statement_period].append(replace(tx, owner_shift_id=owner))

    records = list(existing)
    deleted: list[UUID] = []
    upserts: list[Transaction] = []
    counts = ReconcileCounts()
    for label in sorted(by_period):
        outcome = replace_statement_period(by_period[label], records, label)
        records = list(outcome.records)
        deleted.extend(outcome.to_delete)
        upserts.extend(outcome.to_upsert)
        counts.added += outcome.counts.added
        counts.removed += outcome.counts.removed

    return ReconcileOutcome(
        records=tuple(records),
        counts=counts,
        to_delete=tuple(deleted),
        to_upsert=tuple(upserts),
    )


def restore_backup(
    path: str | PathLike[str],
    *,
    decision: MergeDecision = MergeDecision.ADD_MISSING_ONLY,
    database_url: str | None = None,
    dry_run: bool = False,
    on_progress: Callable[[str], None] | None = None,
) -> RestoreReport:
    """Restore a backup JSON file into the database.

    Raises :class:`~rideshare_import.errors.BackupFormatError` for unreadable
    files (nothing is touched) and
    :class:`~rideshare_import.errors.PersistenceError` when the write fails.
    """

    backup = read_backup(path)
    incoming_shifts = backup.domain_shifts()

    with session_scope(database_url=database_url) as session:
        shifts = load_shifts(session)
        expenses = load_expenses(session)
        transactions = load_transactions(session)

    shift_outcome = reconcile(incoming_shifts, shifts, decision, key=shift_key)
    expense_outcome = reconcile(backup.domain_expenses(), expenses, decision, key=expense_key)
    tx_outcome = restore_transactions(
        backup.domain_transactions(),
        transactions,
        shift_ids=_shift_id_map(incoming_shifts, shifts, decision),
        valid_shift_ids={s.id for s in shift_outcome.records},
    )

    report = RestoreReport(
        decision=decision,
        shifts=shift_outcome,
        expenses=expense_outcome,
        transactions=tx_outcome,
        committed=not dry_run,
    )
    _log.info("restore (%s): %s", decision.value, report.counts())

    if not dry_run:
        apply_outcomes(
            [
                (Shift, shift_outcome),
                (Expense, expense_outcome),
                (Transaction, tx_outcome),
            ],
            database_url=database_url,
        )
    if on_progress:
        for kind, c in report.counts().items():
            on_progress(
                f"{kind}: {c['added']} added, {c['updated']} updated, "
                f"{c['skipped']} skipped, {c['removed']} removed"
            )
    return report


__all__ = ["RestoreReport", "restore_transactions", "restore_backup"]
