"""DB helpers for tests: bootstrap a temporary SQLite DB and seed records."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from sqlalchemy import text as sql_text

from rideshare_import.models import Expense, MergeDecision, Shift, Transaction
from rideshare_import.persistence import (
    load_expenses,
    load_shifts,
    load_transactions,
    save_shifts,
    write_outcome,
)
from rideshare_import.reconcile import reconcile


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    _assert_foreign_keys_enforced(url)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def _assert_foreign_keys_enforced(database_url: str) -> None:
    with session_scope(database_url=database_url) as session:
        enabled = session.execute(sql_text("PRAGMA foreign_keys")).scalar()
    assert enabled == 1, "db.client did not enable SQLite foreign keys"


def seed_shifts(*, database_url: str, shifts: Iterable[Shift]) -> None:
    with session_scope(database_url=database_url) as session:
        save_shifts(session, shifts)


def seed_expenses(*, database_url: str, expenses: Iterable[Expense]) -> None:
    outcome = reconcile(list(expenses), [], MergeDecision.REPLACE_ALL, key=lambda e: e.id)
    with session_scope(database_url=database_url) as session:
        write_outcome(session, Expense, outcome)


def seed_transactions(*, database_url: str, transactions: Iterable[Transaction]) -> None:
    outcome = reconcile(list(transactions), [], MergeDecision.REPLACE_ALL, key=lambda t: t.id)
    with session_scope(database_url=database_url) as session:
        write_outcome(session, Transaction, outcome)


def stored_shifts(database_url: str) -> list[Shift]:
    with session_scope(database_url=database_url) as session:
        return load_shifts(session)


def stored_expenses(database_url: str) -> list[Expense]:
    with session_scope(database_url=database_url) as session:
        return load_expenses(session)


def stored_transactions(database_url: str, *, period_label: str | None = None) -> list[Transaction]:
    with session_scope(database_url=database_url) as session:
        return load_transactions(session, period_label=period_label)
