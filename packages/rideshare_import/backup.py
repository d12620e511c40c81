"""Backup file schema and JSON I/O.

A backup is one JSON document holding every shift, expense and imported
statement transaction. Files are validated with Pydantic on read (unknown
keys rejected) and written atomically.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Iterable
from datetime import UTC, datetime
from datetime import date as Date
from decimal import Decimal
from os import PathLike
from pathlib import Path
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import BackupFormatError
from .models import Expense, ExpenseCategory, Shift, Transaction

SCHEMA_VERSION = 1


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


class ShiftRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: UUID
    start_at: datetime
    end_at: datetime | None = None
    odometer_start: Decimal
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

    def to_domain(self) -> Shift:
        return Shift(**self.model_dump())

    @classmethod
    def from_domain(cls, shift: Shift) -> ShiftRecord:
        return cls(**{name: getattr(shift, name) for name in cls.model_fields})


class ExpenseRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    id: UUID
    date: Date
    category: ExpenseCategory
    description: str
    amount: Decimal

    def to_domain(self) -> Expense:
        return Expense(**self.model_dump())

    @classmethod
    def from_domain(cls, expense: Expense) -> ExpenseRecord:
        return cls(**{name: getattr(expense, name) for name in cls.model_fields})


class TransactionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: UUID
    statement_period: str
    posted_at: datetime
    event_at: datetime | None = None
    label: str
    amount: Decimal
    secondary_amount: Decimal | None = None
    needs_manual_verification: bool = False
    owner_shift_id: UUID | None = None
    source_row_index: int = 0
    imported_at: datetime

    @field_validator("statement_period")
    @classmethod
    def _period_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("statement_period must be non-empty")
        return v

    def to_domain(self) -> Transaction:
        return Transaction(**self.model_dump())

    @classmethod
    def from_domain(cls, tx: Transaction) -> TransactionRecord:
        return cls(**{name: getattr(tx, name) for name in cls.model_fields})


class BackupFile(BaseModel):
    """Top-level schema for a backup JSON file."""

    model_config = ConfigDict(extra="forbid")

    version: int
    created_at: datetime
    shifts: list[ShiftRecord]
    expenses: list[ExpenseRecord] = []
    transactions: list[TransactionRecord] = []

    @field_validator("version")
    @classmethod
    def _supported_version(cls, v: int) -> int:
        if v > SCHEMA_VERSION:
            raise ValueError(f"backup version {v} is newer than supported ({SCHEMA_VERSION})")
        return v

    def domain_shifts(self) -> list[Shift]:
        return [s.to_domain() for s in self.shifts]

    def domain_expenses(self) -> list[Expense]:
        return [e.to_domain() for e in self.expenses]

    def domain_transactions(self) -> list[Transaction]:
        return [t.to_domain() for t in self.transactions]


# ---------------------------------------------------------------------------
# I/O
# ---------------------------------------------------------------------------


def build_backup(
    shifts: Iterable[Shift],
    expenses: Iterable[Expense] = (),
    transactions: Iterable[Transaction] = (),
    *,
    created_at: datetime | None = None,
) -> BackupFile:
    return BackupFile(
        version=SCHEMA_VERSION,
        created_at=created_at or datetime.now(UTC),
        shifts=[ShiftRecord.from_domain(s) for s in shifts],
        expenses=[ExpenseRecord.from_domain(e) for e in expenses],
        transactions=[TransactionRecord.from_domain(t) for t in transactions],
    )


def read_backup(path: str | PathLike[str]) -> BackupFile:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BackupFormatError(f"could not read backup {p}: {exc}") from exc
    try:
        return BackupFile.model_validate_json(text)
    except ValidationError as exc:
        raise BackupFormatError(
            f"{p.name} is not a valid backup ({exc.error_count()} error(s)): {exc}"
        ) from exc


def write_backup(path: str | PathLike[str], backup: BackupFile) -> Path:
    """Write ``backup`` as JSON, replacing ``path`` atomically."""

    p = Path(path)
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        tmp.write_text(
            json.dumps(backup.model_dump(mode="json"), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, p)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    return p


__all__ = [
    "SCHEMA_VERSION",
    "ShiftRecord",
    "ExpenseRecord",
    "TransactionRecord",
    "BackupFile",
    "build_backup",
    "read_backup",
    "write_backup",
]
