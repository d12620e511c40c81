import csv
import io
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from rideshare_import.missing_shifts import (
    SHIFT_IMPORT_HEADER,
    generate_missing_shifts_csv,
    group_by_statement_day,
    shift_times,
    statement_day,
)
from rideshare_import.models import Transaction

PERIOD = "Aug 4, 2025 - Aug 11, 2025"


def _tx(at: datetime, label: str, amount: str, toll: str | None = None) -> Transaction:
    return Transaction(
        posted_at=at,
        event_at=at,
        label=label,
        amount=Decimal(amount),
        secondary_amount=Decimal(toll) if toll else None,
        statement_period=PERIOD,
        imported_at=datetime(2025, 8, 12, tzinfo=UTC),
    )


def test_statement_day_turns_at_four_am():
    assert statement_day(datetime(2025, 8, 9, 3, 59)) == date(2025, 8, 8)
    assert statement_day(datetime(2025, 8, 9, 4, 0)) == date(2025, 8, 9)


def test_group_by_statement_day_is_sorted():
    late = _tx(datetime(2025, 8, 10, 12, 0), "UberX", "5.00")
    early = _tx(datetime(2025, 8, 8, 18, 0), "UberX", "5.00")
    assert list(group_by_statement_day([late, early])) == [date(2025, 8, 8), date(2025, 8, 10)]


def test_shift_times_needs_transactions():
    with pytest.raises(ValueError):
        shift_times([])


def test_one_template_row_per_statement_day():
    txs = [
        _tx(datetime(2025, 8, 8, 18, 5), "UberX", "15.00", toll="2.00"),
        _tx(datetime(2025, 8, 8, 21, 30), "Tip", "4.50"),
        _tx(datetime(2025, 8, 9, 2, 0), "Quest", "20.00"),  # still Aug 8's day
        _tx(datetime(2025, 8, 9, 10, 15), "UberX", "11.25"),
    ]

    text = generate_missing_shifts_csv(txs)
    rows = list(csv.DictReader(io.StringIO(text)))

    assert text.splitlines()[0] == ",".join(SHIFT_IMPORT_HEADER)
    assert len(rows) == 2
    first, second = rows
    assert first["StartDate"] == "08/08/2025"
    assert first["StartTime"] == "6:05:00 PM"
    assert first["EndDate"] == "08/09/2025"
    assert first["EndTime"] == "2:00:00 AM"
    assert first["NetFare"] == "15.00"
    assert first["Tips"] == "4.50"
    assert first["Promotions"] == "20.00"
    assert first["TollsReimbursed"] == "2.00"
    assert first["StartMileage"] == ""
    assert second["StartTime"] == "10:15:00 AM"
    assert second["Tips"] == ""
    assert second["NetFare"] == "11.25"


def test_no_orphans_yields_header_only():
    assert generate_missing_shifts_csv([]) == ",".join(SHIFT_IMPORT_HEADER) + "\n"
