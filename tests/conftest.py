"""Pytest configuration for test isolation.

``db.client`` keeps one engine per process, bound to the first URL it sees.
Each test gets a fresh engine and a clean environment: ``DATABASE_URL`` and
the matching offset override are removed so nothing leaks in from a
developer's shell or ``.env``.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from db.client import reset_engine
from rideshare_import.models import Shift

from tests.helpers.db import bootstrap_sqlite_db, seed_shifts

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture(autouse=True)
def _isolate_db_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("RIDESHARE_BOUNDARY_OFFSET_MINUTES", raising=False)
    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """File-backed SQLite database with the rideshare schema."""

    return bootstrap_sqlite_db(tmp_path / "rideshare.db")


@pytest.fixture
def statement_csv() -> Path:
    """Week of Aug 4-11 2025: three rides/tips on Friday evening, one ride on
    Saturday evening, two Sunday earnings with no logged shift, one payout."""

    return DATA_DIR / "uber_statement_aug_4_11_2025.csv"


@pytest.fixture
def week_shifts(database_url: str) -> tuple[Shift, Shift]:
    """The two shifts logged for the statement week, already stored.

    Friday's shift carries a manual tip entry of 5.00.
    """

    friday = Shift(
        start_at=datetime(2025, 8, 8, 18, 0),
        end_at=datetime(2025, 8, 8, 23, 30),
        odometer_start=Decimal("1000.0"),
        odometer_end=Decimal("1088.2"),
        tips=Decimal("5.00"),
    )
    saturday = Shift(
        start_at=datetime(2025, 8, 9, 17, 0),
        end_at=datetime(2025, 8, 9, 22, 0),
        odometer_start=Decimal("1090.0"),
        odometer_end=Decimal("1131.7"),
    )
    seed_shifts(database_url=database_url, shifts=[friday, saturday])
    return friday, saturday
