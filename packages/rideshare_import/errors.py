"""Error and warning taxonomy for statement import.

Fatal conditions are exceptions; everything the import survives is a frozen
warning value that travels with the result it qualifies.

- ``DocumentStructureFailure``: raised, aborts the whole document before any
  persisted state changes.
- ``RowParseFailure``: raised per row by the field parser, caught by
  :func:`rideshare_import.parser.parse_statement` and accumulated.
- ``PersistenceError``: the committed write step failed and was rolled back.
- ``BackupFormatError``: a backup file failed schema validation.
- ``ReconciliationConflict``: a manual value that disagrees with an imported
  one; returned to the caller for a keep/accept decision, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class StatementImportError(Exception):
    """Base class for all import failures."""


class DocumentStructureFailure(StatementImportError):
    """No recognizable header/column layout; the document is rejected."""


class RowParseFailure(StatementImportError):
    """A single row-group could not be parsed and was dropped."""

    def __init__(self, row_index: int, reason: str, text: str = "") -> None:
        super().__init__(f"row {row_index}: {reason}")
        self.row_index = row_index
        self.reason = reason
        self.text = text


class PersistenceError(StatementImportError):
    """Writing a reconcile outcome failed; nothing was committed."""


class BackupFormatError(StatementImportError):
    """A backup file is unreadable or does not match the backup schema."""


# ---------------------------------------------------------------------------
# Non-fatal warnings
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StatementWarning:
    """Base for non-fatal findings attached to a parse or match result."""

    row_index: int

    @property
    def message(self) -> str:  # pragma: no cover - overridden
        return type(self).__name__


@dataclass(frozen=True, slots=True)
class AmbiguousYearWarning(StatementWarning):
    month: int
    period_label: str
    assumed_year: int

    @property
    def message(self) -> str:
        return (
            f"month {self.month} lies outside statement period {self.period_label}; "
            f"assumed {self.assumed_year}"
        )


@dataclass(frozen=True, slots=True)
class AmountFallbackWarning(StatementWarning):
    amounts_found: int

    @property
    def message(self) -> str:
        return f"only {self.amounts_found} amount(s) found; used the first one"


@dataclass(frozen=True, slots=True)
class AmountMissingWarning(StatementWarning):
    @property
    def message(self) -> str:
        return "no dollar amounts found; amount recorded as 0.00"


@dataclass(frozen=True, slots=True)
class EventAfterPostingWarning(StatementWarning):
    event_at: datetime
    posted_at: datetime

    @property
    def message(self) -> str:
        return (
            f"event time {self.event_at.isoformat()} is after posting time "
            f"{self.posted_at.isoformat()}; event time discarded"
        )


@dataclass(frozen=True, slots=True)
class MatchAmbiguityWarning(StatementWarning):
    transaction_id: UUID
    candidate_shift_ids: tuple[UUID, ...]
    chosen_shift_id: UUID

    @property
    def message(self) -> str:
        return (
            f"transaction {self.transaction_id} fits {len(self.candidate_shift_ids)} "
            f"shifts; assigned to {self.chosen_shift_id}"
        )


# ---------------------------------------------------------------------------
# Reconciliation conflicts
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReconciliationConflict:
    """Manual entry higher than the imported value for one shift field.

    ``field`` is the shift attribute name (``"tips"`` or
    ``"tolls_reimbursed"``).
    """

    shift_id: UUID
    field: str
    manual: Decimal
    imported: Decimal

    @property
    def difference(self) -> Decimal:
        return self.manual - self.imported


__all__ = [
    "StatementImportError",
    "DocumentStructureFailure",
    "RowParseFailure",
    "PersistenceError",
    "BackupFormatError",
    "StatementWarning",
    "AmbiguousYearWarning",
    "AmountFallbackWarning",
    "AmountMissingWarning",
    "EventAfterPostingWarning",
    "MatchAmbiguityWarning",
    "ReconciliationConflict",
]
