"""Public interface for the ``rideshare_import`` package.

This module exposes the package's pure API functions and public models as
the stable import surface. There is no runtime logic here, only symbol
re-exports.
"""

from .api import (
    import_statement,
    match_transactions,
    parse_statement,
    reconcile,
    restore_backup,
)
from .errors import (
    DocumentStructureFailure,
    PersistenceError,
    ReconciliationConflict,
    RowParseFailure,
    StatementImportError,
    StatementWarning,
)
from .models import (
    ColumnLayout,
    ConflictChoice,
    Expense,
    MatchResult,
    MergeDecision,
    ParseResult,
    PositionedToken,
    ReconcileOutcome,
    Shift,
    StatementPeriod,
    Transaction,
)

__all__ = [
    # API
    "parse_statement",
    "match_transactions",
    "reconcile",
    "import_statement",
    "restore_backup",
    # Models
    "PositionedToken",
    "ColumnLayout",
    "StatementPeriod",
    "Transaction",
    "Shift",
    "Expense",
    "MergeDecision",
    "ConflictChoice",
    "ParseResult",
    "MatchResult",
    "ReconcileOutcome",
    # Errors
    "StatementImportError",
    "DocumentStructureFailure",
    "RowParseFailure",
    "PersistenceError",
    "StatementWarning",
    "ReconciliationConflict",
]
