# ruff: noqa: I001
"""Rideshare core tables: shifts, expenses, imported statement transactions.

Revision ID: 0001_rideshare_core
Revises: None
Create Date: 2025-11-10
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_rideshare_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=True)


def upgrade() -> None:
    # rs_shifts
    op.create_table(
        "rs_shifts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=True),
        sa.Column("odometer_start", sa.Numeric(10, 1), nullable=False),
        sa.Column("odometer_end", sa.Numeric(10, 1), nullable=True),
        sa.Column("trips", sa.Integer(), nullable=True),
        _money("net_fare"),
        _money("tips"),
        _money("promotions"),
        _money("tolls"),
        _money("tolls_reimbursed"),
        _money("parking_fees"),
        _money("misc_fees"),
        _money("original_tips"),
        _money("original_tolls_reimbursed"),
        sa.Column(
            "user_verified",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "end_at IS NULL OR end_at >= start_at",
            name="ck_rs_shift_end_after_start",
        ),
    )
    op.create_index("ix_rs_shifts_start_at", "rs_shifts", ["start_at"], unique=False)

    # rs_expenses
    op.create_table(
        "rs_expenses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "category in ('Vehicle','Equipment','Supplies','Amenities')",
            name="ck_rs_expense_category",
        ),
    )

    # rs_uber_transactions
    op.create_table(
        "rs_uber_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("statement_period", sa.String(), nullable=False),
        sa.Column("posted_at", sa.DateTime(), nullable=False),
        sa.Column("event_at", sa.DateTime(), nullable=True),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        _money("secondary_amount"),
        sa.Column(
            "needs_manual_verification",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("owner_shift_id", sa.Uuid(), nullable=True),
        sa.Column(
            "source_row_index",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["owner_shift_id"],
            ["rs_shifts.id"],
            name="fk_rs_tx_owner_shift",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint(
            "event_at IS NULL OR event_at <= posted_at",
            name="ck_rs_tx_event_not_after_posting",
        ),
    )
    op.create_index(
        "ix_rs_tx_statement_period", "rs_uber_transactions", ["statement_period"], unique=False
    )
    op.create_index(
        "ix_rs_tx_owner_shift_id", "rs_uber_transactions", ["owner_shift_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_rs_tx_owner_shift_id", table_name="rs_uber_transactions")
    op.drop_index("ix_rs_tx_statement_period", table_name="rs_uber_transactions")
    op.drop_table("rs_uber_transactions")
    op.drop_table("rs_expenses")
    op.drop_index("ix_rs_shifts_start_at", table_name="rs_shifts")
    op.drop_table("rs_shifts")
