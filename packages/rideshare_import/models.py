"""Data models for statement import, shift matching and reconciliation.

Everything here is an immutable value. The parser creates ``Transaction``
objects once per row-group; the matcher derives owned copies through
:meth:`Transaction.assigned_to`; the reconciliation engine returns new
``Shift`` values instead of mutating the snapshot it was handed.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from .errors import (
    MatchAmbiguityWarning,
    ReconciliationConflict,
    RowParseFailure,
    StatementWarning,
)

# ---------------------------------------------------------------------------
# Layout primitives
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PositionedToken:
    """A text fragment at a page position.

    ``y`` grows upward (PDF user space): larger ``y`` is closer to the top of
    the page.
    """

    text: str
    x: float
    y: float


class ColumnLayout(enum.Enum):
    """Column schema of the statement transaction table."""

    # Processed | Event | Your earnings | Payouts | Balance
    FIVE_COLUMN = 5
    # Processed | Event | Your earnings | Refunds & Expenses | Payouts | Balance
    SIX_COLUMN = 6


# ---------------------------------------------------------------------------
# Statement period
# ---------------------------------------------------------------------------

_PERIOD_LABEL_RE = re.compile(
    r"^([A-Za-z]{3}) (\d{1,2}), (\d{4}) - ([A-Za-z]{3}) (\d{1,2}), (\d{4})$"
)


@dataclass(frozen=True, slots=True)
class StatementPeriod:
    """Inclusive date range covered by one statement."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"StatementPeriod start {self.start.isoformat()} is after end "
                f"{self.end.isoformat()}"
            )

    @property
    def crosses_year(self) -> bool:
        return self.start.year != self.end.year

    @property
    def label(self) -> str:
        """Identifier stored on every transaction of this statement."""

        return f"{_fmt_day(self.start)} - {_fmt_day(self.end)}"

    @classmethod
    def from_label(cls, label: str) -> StatementPeriod:
        m = _PERIOD_LABEL_RE.match(label.strip())
        if not m:
            raise ValueError(f"not a statement period label: {label!r}")
        start = datetime.strptime(f"{m.group(1)} {m.group(2)} {m.group(3)}", "%b %d %Y")
        end = datetime.strptime(f"{m.group(4)} {m.group(5)} {m.group(6)}", "%b %d %Y")
        return cls(start=start.date(), end=end.date())

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


def _fmt_day(d: date) -> str:
    return f"{d.strftime('%b')} {d.day}, {d.year}"


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionCategory(enum.Enum):
    TIP = "tip"
    PROMOTION = "promotion"
    NET_FARE = "net_fare"
    IGNORE = "ignore"


@dataclass(frozen=True, slots=True)
class Transaction:
    """One parsed statement row-group.

    ``owner_shift_id`` is the only attribute a matcher may set, and only once,
    through :meth:`assigned_to`. ``secondary_amount`` holds the toll
    reimbursement found in the "Refunds & Expenses" column.
    """

    posted_at: datetime
    label: str
    amount: Decimal
    statement_period: str
    imported_at: datetime
    event_at: datetime | None = None
    secondary_amount: Decimal | None = None
    needs_manual_verification: bool = False
    owner_shift_id: UUID | None = None
    source_row_index: int = 0
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.event_at is not None and self.event_at > self.posted_at:
            raise ValueError("event_at must not be later than posted_at")

    @property
    def effective_at(self) -> datetime:
        """Timestamp used for shift matching: event time, else posting time."""

        return self.event_at if self.event_at is not None else self.posted_at

    @property
    def is_orphan(self) -> bool:
        return self.owner_shift_id is None

    def assigned_to(self, shift_id: UUID) -> Transaction:
        if self.owner_shift_id is not None and self.owner_shift_id != shift_id:
            raise ValueError(
                f"transaction {self.id} already belongs to shift {self.owner_shift_id}"
            )
        return replace(self, owner_shift_id=shift_id)

    def verified(self) -> Transaction:
        return replace(self, needs_manual_verification=False)


# ---------------------------------------------------------------------------
# Shifts and expenses (persisted records owned by the host application)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Shift:
    """A bounded work session.

    ``original_tips`` / ``original_tolls_reimbursed`` keep the last manually
    entered value from before an import overwrote it. They only feed conflict
    display and are never matched against.
    """

    start_at: datetime
    odometer_start: Decimal
    end_at: datetime | None = None
    odometer_end: Decimal | None = None
    trips: int | None = None
    net_fare: Decimal | None = None
    tips: Decimal | None = None
    promotions: Decimal | None = None
    tolls: Decimal | None = None
    tolls_reimbursed: Decimal | None = None
    parking_fees: Decimal | None = None
    misc_fees: Decimal | None = None
    original_tips: Decimal | None = None
    original_tolls_reimbursed: Decimal | None = None
    user_verified: bool = False
    id: UUID = field(default_factory=uuid4)

    @property
    def is_closed(self) -> bool:
        return self.end_at is not None


class ExpenseCategory(enum.Enum):
    VEHICLE = "Vehicle"
    EQUIPMENT = "Equipment"
    SUPPLIES = "Supplies"
    AMENITIES = "Amenities"


@dataclass(frozen=True, slots=True)
class Expense:
    date: date
    category: ExpenseCategory
    description: str
    amount: Decimal
    id: UUID = field(default_factory=uuid4)


# ---------------------------------------------------------------------------
# Merge policy and results
# ---------------------------------------------------------------------------


class MergeDecision(enum.Enum):
    """User-selected duplicate policy, applied uniformly to a whole batch."""

    REPLACE_ALL = "replace-all"
    ADD_MISSING_ONLY = "add-missing"
    MERGE_AND_UPDATE = "merge"


class ConflictChoice(enum.Enum):
    KEEP_MANUAL = "keep-manual"
    ACCEPT_IMPORTED = "accept-imported"


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Output of the parse entry point for one document."""

    transactions: tuple[Transaction, ...]
    warnings: tuple[StatementWarning, ...]
    failures: tuple[RowParseFailure, ...]
    layout: ColumnLayout | None
    period: StatementPeriod

    @property
    def row_count(self) -> int:
        return len(self.transactions) + len(self.failures)


@dataclass(frozen=True, slots=True)
class ShiftMatch:
    shift_id: UUID
    transaction: Transaction


@dataclass(frozen=True, slots=True)
class MatchResult:
    matched: tuple[ShiftMatch, ...]
    unmatched: tuple[Transaction, ...]
    ignored: tuple[Transaction, ...] = ()
    warnings: tuple[MatchAmbiguityWarning, ...] = ()

    def transactions(self) -> list[Transaction]:
        """All transactions in source-row order, owned ones carrying their shift."""

        items = [m.transaction for m in self.matched]
        items.extend(self.unmatched)
        items.extend(self.ignored)
        return sorted(items, key=lambda t: t.source_row_index)


@dataclass(slots=True)
class ReconcileCounts:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    removed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "removed": self.removed,
        }


@dataclass(frozen=True, slots=True)
class ReconcileOutcome[R]:
    """Staged result of one reconciliation run.

    ``records`` is the full final record set. ``to_delete`` and ``to_upsert``
    are the write-back a persistence layer applies in one committed step.
    """

    records: tuple[R, ...]
    counts: ReconcileCounts
    to_delete: tuple[UUID, ...] = ()
    to_upsert: tuple[R, ...] = ()
    conflicts: tuple[ReconciliationConflict, ...] = ()


__all__ = [
    "PositionedToken",
    "ColumnLayout",
    "StatementPeriod",
    "TransactionCategory",
    "Transaction",
    "Shift",
    "ExpenseCategory",
    "Expense",
    "MergeDecision",
    "ConflictChoice",
    "ParseResult",
    "ShiftMatch",
    "MatchResult",
    "ReconcileCounts",
    "ReconcileOutcome",
]
