"""Calendar-year resolution for statement dates printed without a year."""

from __future__ import annotations

from .errors import AmbiguousYearWarning
from .models import StatementPeriod


def infer_year(
    month: int, period: StatementPeriod, *, row_index: int = 0
) -> tuple[int, AmbiguousYearWarning | None]:
    """Return the year a ``month`` belongs to within ``period``.

    A period inside one calendar year resolves to that year. A period that
    crosses New Year assigns ``start.month..12`` to the start year and
    ``1..end.month`` to the end year. Any other month cannot belong to the
    statement; the start year is returned together with an
    :class:`AmbiguousYearWarning` the caller must attach to the row.
    """

    if not period.crosses_year:
        return period.start.year, None

    if period.start.month <= month <= 12:
        return period.start.year, None
    if 1 <= month <= period.end.month:
        return period.end.year, None

    warning = AmbiguousYearWarning(
        row_index=row_index,
        month=month,
        period_label=period.label,
        assumed_year=period.start.year,
    )
    return period.start.year, warning


__all__ = ["infer_year"]
