"""Shift-import template for orphan transactions.

Transactions that matched no shift usually mean a shift was never logged.
This module groups them by statement day and renders one pre-filled row per
day in the shift-import CSV format, leaving the vehicle fields (mileage, tank
readings, fuel) blank for the user to complete.
"""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import Decimal

from .aggregation import totals
from .models import Transaction

# Statement days start at 04:00; earlier trips belong to the previous day.
DAY_BOUNDARY = timedelta(hours=4)

SHIFT_IMPORT_HEADER: tuple[str, ...] = (
    "StartDate",
    "StartTime",
    "EndDate",
    "EndTime",
    "StartMileage",
    "EndMileage",
    "StartTankReading",
    "EndTankReading",
    "RefuelGallons",
    "RefuelCost",
    "GasPrice",
    "StandardMileageRate",
    "Trips",
    "NetFare",
    "Tips",
    "CashTips",
    "Promotions",
    "Tolls",
    "TollsReimbursed",
    "ParkingFees",
    "MiscFees",
)


def statement_day(ts: datetime) -> date:
    return (ts - DAY_BOUNDARY).date()


def group_by_statement_day(
    transactions: Iterable[Transaction],
) -> dict[date, list[Transaction]]:
    grouped: dict[date, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        grouped[statement_day(tx.effective_at)].append(tx)
    return dict(sorted(grouped.items()))


def shift_times(transactions: Iterable[Transaction]) -> tuple[datetime, datetime]:
    """Earliest and latest transaction time of one day."""

    stamps = [tx.effective_at for tx in transactions]
    if not stamps:
        raise ValueError("shift_times() needs at least one transaction")
    return min(stamps), max(stamps)


def _fmt_date(ts: datetime) -> str:
    return ts.strftime("%m/%d/%Y")


def _fmt_time(ts: datetime) -> str:
    hour = ts.hour % 12 or 12
    return f"{hour}:{ts.minute:02d}:{ts.second:02d} {'AM' if ts.hour < 12 else 'PM'}"


def _fmt_amount(value: Decimal) -> str:
    return "" if value == 0 else f"{value:.2f}"


def template_rows(transactions: Iterable[Transaction]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for txs in group_by_statement_day(transactions).values():
        start, end = shift_times(txs)
        t = totals(txs)
        row = dict.fromkeys(SHIFT_IMPORT_HEADER, "")
        row.update(
            StartDate=_fmt_date(start),
            StartTime=_fmt_time(start),
            EndDate=_fmt_date(end),
            EndTime=_fmt_time(end),
            NetFare=_fmt_amount(t.net_fare),
            Tips=_fmt_amount(t.tips),
            Promotions=_fmt_amount(t.promotions),
            TollsReimbursed=_fmt_amount(t.tolls_reimbursed),
        )
        rows.append(row)
    return rows


def generate_missing_shifts_csv(transactions: Iterable[Transaction]) -> str:
    """Render orphan transactions as shift-import CSV text (header included)."""

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=SHIFT_IMPORT_HEADER, lineterminator="\n")
    writer.writeheader()
    writer.writerows(template_rows(transactions))
    return buf.getvalue()


__all__ = [
    "DAY_BOUNDARY",
    "SHIFT_IMPORT_HEADER",
    "statement_day",
    "group_by_statement_day",
    "shift_times",
    "template_rows",
    "generate_missing_shifts_csv",
]
