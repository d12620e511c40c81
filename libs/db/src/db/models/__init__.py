"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the rideshare domain models used by ``rideshare_import``.
"""

from .rideshare import Base, RsExpense, RsShift, RsUberTransaction

__all__ = [
    "Base",
    "RsShift",
    "RsExpense",
    "RsUberTransaction",
]
