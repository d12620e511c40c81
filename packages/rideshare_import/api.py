"""Public API for the ``rideshare_import`` package.

Three pure entry points cover the pipeline:

- :func:`parse_statement`: positioned text → transactions, warnings, failures.
- :func:`match_transactions`: transactions × shifts → matched/unmatched.
- :func:`reconcile`: incoming × existing records under a merge decision.

:func:`import_statement` and :func:`restore_backup` are the database-backed
workflows; their DB imports stay local so the pure entry points do not pull
in SQLAlchemy.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import Any

from .matcher import match_transactions  # noqa: F401  (re-export)
from .models import (
    Expense,
    MergeDecision,
    ReconcileOutcome,
    Shift,
    Transaction,
)
from .parser import parse_statement  # noqa: F401  (re-export)
from .reconcile import expense_key, reconcile as _reconcile, reconcile_transactions, shift_key

_DEFAULT_KEYS: dict[type, Callable[[Any], Hashable]] = {
    Shift: shift_key,
    Expense: expense_key,
}


def reconcile[R](
    incoming: Iterable[R],
    existing: Sequence[R],
    decision: MergeDecision,
    *,
    key: Callable[[R], Hashable] | None = None,
    period_label: str | None = None,
) -> ReconcileOutcome[R]:
    """Merge incoming records into an existing snapshot.

    ``key`` defaults to the duplicate key of the record kind (shift or
    expense), picked from the first record seen. Statement transactions go
    through :func:`reconcile_transactions`, scoped to one statement period:
    ``period_label`` defaults to the batch's period and is required when the
    batch is empty.
    """

    batch = list(incoming)
    sample = batch[0] if batch else (existing[0] if existing else None)
    if key is None and isinstance(sample, Transaction):
        if period_label is None:
            if not batch:
                raise ValueError(
                    "period_label is required to reconcile an empty transaction batch"
                )
            period_label = batch[0].statement_period
        return reconcile_transactions(batch, existing, decision, period_label=period_label)
    if key is None:
        key = _DEFAULT_KEYS.get(type(sample), shift_key) if sample is not None else shift_key
    return _reconcile(batch, existing, decision, key=key)


def import_statement(path, **kwargs):
    """Run the statement import workflow (see ``workflows.import_flow``)."""

    from .workflows.import_flow import import_statement as _impl

    return _impl(path, **kwargs)


def restore_backup(path, **kwargs):
    """Run the backup restore workflow (see ``workflows.restore_flow``)."""

    from .workflows.restore_flow import restore_backup as _impl

    return _impl(path, **kwargs)


__all__ = [
    "parse_statement",
    "match_transactions",
    "reconcile",
    "import_statement",
    "restore_backup",
]
