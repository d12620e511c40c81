# ruff: noqa: I001
"""Workflow orchestrator for the statement import.

Composes extraction, parsing, shift matching and reconciliation behind one
importable entry point. The database is read once for a snapshot and
written once, in a single committed step, after every outcome is staged.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from os import PathLike
from uuid import UUID

from db.client import session_scope

from ..errors import ReconciliationConflict
from ..ingest.utils import load_statement
from ..logging_setup import get_logger
from ..matcher import match_transactions
from ..missing_shifts import generate_missing_shifts_csv
from ..models import (
    MatchResult,
    MergeDecision,
    ParseResult,
    ReconcileOutcome,
    Shift,
    ShiftMatch,
    StatementPeriod,
    Transaction,
)
from ..parser import parse_statement
from ..persistence import apply_outcomes, load_shifts, load_transactions
from ..reconcile import apply_imported_totals, reconcile_transactions
from ..settings import load_settings

_log = get_logger("rideshare_import.workflows.import_flow")


@dataclass(frozen=True, slots=True)
class ImportReport:
    """Everything one statement import produced."""

    period: StatementPeriod
    parse: ParseResult
    match: MatchResult
    transactions: ReconcileOutcome[Transaction]
    shifts: ReconcileOutcome[Shift]
    committed: bool

    @property
    def conflicts(self) -> tuple[ReconciliationConflict, ...]:
        return self.shifts.conflicts

    @property
    def unmatched(self) -> tuple[Transaction, ...]:
        return self.match.unmatched

    def missing_shifts_csv(self) -> str:
        return generate_missing_shifts_csv(self.match.unmatched)


def _period_matches(records: tuple[Transaction, ...], touched: set[UUID]) -> list[ShiftMatch]:
    return [
        ShiftMatch(shift_id=tx.owner_shift_id, transaction=tx)
        for tx in records
        if tx.owner_shift_id is not None and tx.owner_shift_id in touched
    ]


def import_statement(
    path: str | PathLike[str],
    *,
    decision: MergeDecision = MergeDecision.REPLACE_ALL,
    period: StatementPeriod | None = None,
    database_url: str | None = None,
    boundary_offset: timedelta | None = None,
    dry_run: bool = False,
    on_progress: Callable[[str], None] | None = None,
) -> ImportReport:
    """End-to-end: statement file → transactions → shift matches → persisted.

    Parameters
    ----------
    path:
        Uber statement PDF or CSV.
    decision:
        Duplicate policy for transactions of a statement period that was
        imported before. ``REPLACE_ALL`` (default) swaps the whole period.
    period:
        Statement period override when the document does not print one.
    boundary_offset:
        Matching grace window; defaults to the configured value.
    dry_run:
        Stage everything but commit nothing.
    on_progress:
        Optional callable to receive short status lines (e.g., ``print``).

    Raises :class:`~rideshare_import.errors.DocumentStructureFailure` before
    touching the database when the document cannot be read as a statement,
    and :class:`~rideshare_import.errors.PersistenceError` when the final
    write fails (nothing is committed in that case).
    """

    settings = load_settings(database_url=database_url)
    offset = boundary_offset if boundary_offset is not None else settings.boundary_offset

    loaded = load_statement(path, period=period)
    parsed = parse_statement(loaded.pages, loaded.period)
    if on_progress:
        on_progress(
            f"Parsed {len(parsed.transactions)} transaction(s) for {loaded.period.label}"
            + (f"; {len(parsed.failures)} row(s) could not be read." if parsed.failures else ".")
        )

    with session_scope(database_url=settings.database_url) as session:
        shifts = load_shifts(session)
        existing = load_transactions(session)

    matched = match_transactions(parsed.transactions, shifts, boundary_offset=offset)
    if on_progress:
        on_progress(
            f"Matched {len(matched.matched)} transaction(s) to shifts; "
            f"{len(matched.unmatched)} without a shift."
        )

    tx_outcome = reconcile_transactions(
        matched.transactions(), existing, decision, period_label=loaded.period.label
    )
    touched = {m.shift_id for m in matched.matched}
    shift_outcome = apply_imported_totals(shifts, _period_matches(tx_outcome.records, touched))

    _log.info(
        "import %s: transactions %s, shifts %s, %d conflict(s)",
        loaded.period.label,
        tx_outcome.counts.as_dict(),
        shift_outcome.counts.as_dict(),
        len(shift_outcome.conflicts),
    )

    if not dry_run:
        apply_outcomes(
            [(Transaction, tx_outcome), (Shift, shift_outcome)],
            database_url=settings.database_url,
        )
    if on_progress and shift_outcome.conflicts:
        on_progress(
            f"{len(shift_outcome.conflicts)} manual value(s) exceed the imported totals; "
            "run 'resolve-conflicts' to review them."
        )

    return ImportReport(
        period=loaded.period,
        parse=parsed,
        match=matched,
        transactions=tx_outcome,
        shifts=shift_outcome,
        committed=not dry_run,
    )


__all__ = ["ImportReport", "import_statement"]
