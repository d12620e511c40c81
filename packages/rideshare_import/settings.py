"""Environment-driven settings for the import pipeline.

The CLI loads a local ``.env`` (python-dotenv, ``override=False``) before
calling :func:`load_settings`; library callers may build ``ImportSettings``
directly instead.

Variables
---------
``DATABASE_URL``
    SQLAlchemy URL used by ``db.client`` for persistence.
``RIDESHARE_BOUNDARY_OFFSET_MINUTES``
    Grace window applied before a shift's start and after its end when
    matching transactions (default 240: Uber statement days turn at 4 AM).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

BOUNDARY_OFFSET_ENV = "RIDESHARE_BOUNDARY_OFFSET_MINUTES"
DEFAULT_BOUNDARY_OFFSET = timedelta(hours=4)


@dataclass(frozen=True, slots=True)
class ImportSettings:
    boundary_offset: timedelta = DEFAULT_BOUNDARY_OFFSET
    database_url: str | None = None


def _minutes_from_env(name: str, default: timedelta) -> timedelta:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        minutes = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer number of minutes, got {raw!r}") from exc
    if minutes < 0:
        raise ValueError(f"{name} must not be negative, got {minutes}")
    return timedelta(minutes=minutes)


def load_settings(*, database_url: str | None = None) -> ImportSettings:
    """Build settings from the environment; explicit arguments win."""

    return ImportSettings(
        boundary_offset=_minutes_from_env(BOUNDARY_OFFSET_ENV, DEFAULT_BOUNDARY_OFFSET),
        database_url=database_url or os.getenv("DATABASE_URL") or None,
    )


__all__ = ["ImportSettings", "load_settings", "DEFAULT_BOUNDARY_OFFSET", "BOUNDARY_OFFSET_ENV"]
