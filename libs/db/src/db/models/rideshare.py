from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# Shift and statement timestamps are wall-clock local times as printed on the
# statement, stored without a zone. Audit columns are UTC.
_NOW = text("CURRENT_TIMESTAMP")


# ---------------------------
# Core: rs_shifts
# ---------------------------


class RsShift(Base):
    __tablename__ = "rs_shifts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    odometer_start: Mapped[Decimal] = mapped_column(Numeric(10, 1), nullable=False)
    odometer_end: Mapped[Decimal | None] = mapped_column(Numeric(10, 1), nullable=True)
    trips: Mapped[int | None] = mapped_column(Integer, nullable=True)
    net_fare: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    tips: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    promotions: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    tolls: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    tolls_reimbursed: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    parking_fees: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    misc_fees: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    # Manual values captured the first time an import overwrote them; only
    # read when showing manual-vs-imported conflicts.
    original_tips: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    original_tolls_reimbursed: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    user_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=_NOW
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=_NOW
    )

    __table_args__ = (
        CheckConstraint(
            "end_at IS NULL OR end_at >= start_at",
            name="ck_rs_shift_end_after_start",
        ),
        Index("ix_rs_shifts_start_at", "start_at"),
    )


# ---------------------------
# Core: rs_expenses
# ---------------------------


class RsExpense(Base):
    __tablename__ = "rs_expenses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=_NOW
    )

    __table_args__ = (
        CheckConstraint(
            "category in ('Vehicle','Equipment','Supplies','Amenities')",
            name="ck_rs_expense_category",
        ),
    )


# ---------------------------
# Imported: rs_uber_transactions
# ---------------------------


class RsUberTransaction(Base):
    __tablename__ = "rs_uber_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    # "Aug 4, 2025 - Aug 11, 2025"; a re-import replaces every row of a period.
    statement_period: Mapped[str] = mapped_column(String, nullable=False)
    posted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    event_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    secondary_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    needs_manual_verification: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    owner_shift_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("rs_shifts.id", ondelete="SET NULL"),
        nullable=True,
    )
    source_row_index: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    imported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "event_at IS NULL OR event_at <= posted_at",
            name="ck_rs_tx_event_not_after_posting",
        ),
        Index("ix_rs_tx_statement_period", "statement_period"),
        Index("ix_rs_tx_owner_shift_id", "owner_shift_id"),
    )


__all__ = [
    "Base",
    "RsShift",
    "RsExpense",
    "RsUberTransaction",
]
