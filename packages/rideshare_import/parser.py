"""Statement field parser.

Each transaction row-group is folded into exactly one immutable
:class:`~rideshare_import.models.Transaction`. A row-group usually spans two
physical lines::

    Sat, Aug 9   12:24 AM   UberX   $15.00 $2.00 $17.00
                            Aug 8 11:50 PM

The first line carries the posting date and time, the trip type and the
money columns (the last amount is always the running balance). A later line
carries the event timestamp, i.e. when the trip actually happened.

Public surface:
- ``parse_statement``: tokens of a whole document → :class:`ParseResult`.
- ``parse_row_group``: one row-group → ``(Transaction, warnings)``.
- ``select_amounts``: amount disambiguation by label and column layout.
- ``parse_statement_period``: find the statement period in page text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from functools import reduce
from typing import Literal, NamedTuple

from .errors import (
    AmountFallbackWarning,
    AmountMissingWarning,
    EventAfterPostingWarning,
    RowParseFailure,
    StatementWarning,
)
from .layout import POSTED_DATE_RE, RowGroup, find_header_layout, group_rows, split_row_groups
from .logging_setup import get_logger
from .models import ColumnLayout, ParseResult, PositionedToken, StatementPeriod, Transaction
from .years import infer_year

_log = get_logger("rideshare_import.parser")

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s+(AM|PM)$")
_EVENT_RE = re.compile(r"^([A-Za-z]+)\s+(\d{1,2})\s+(\d{1,2}):(\d{2})\s+(AM|PM)$")
_AMOUNT_RE = re.compile(r"[-+]?\$[\d,]+\.\d+")
_AMOUNTS_ONLY_RE = re.compile(r"^(?:[-+]?\$[\d,]+\.\d+\s*)+$")
_TRAILING_AMOUNTS_RE = re.compile(r"(?:\s*[-+]?\$[\d,]+\.\d+)+$")
_PERIOD_RE = re.compile(
    r"([A-Za-z]+)\s+(\d{1,2}),\s+(\d{4})(?:\s+\d{1,2}\s*[AP]M)?"
    r"\s+-\s+"
    r"([A-Za-z]+)\s+(\d{1,2}),\s+(\d{4})(?:\s+\d{1,2}\s*[AP]M)?"
)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}  # fmt: skip

_PAYOUT_MARKERS = ("transferred to bank",)
_VALIDATION_MARKERS = ("account validation",)


def month_number(name: str) -> int | None:
    return _MONTHS.get(name.strip()[:3].lower())


def _to_24h(hour12: int, minute: int, meridiem: str) -> tuple[int, int]:
    if not 1 <= hour12 <= 12 or not 0 <= minute <= 59:
        raise ValueError(f"invalid 12-hour time {hour12}:{minute:02d} {meridiem}")
    hour = hour12 % 12
    if meridiem == "PM":
        hour += 12
    return hour, minute


def _parse_amount(text: str) -> Decimal:
    return Decimal(text.replace("$", "").replace(",", ""))


# ---------------------------------------------------------------------------
# Amount disambiguation
# ---------------------------------------------------------------------------


class AmountSelection(NamedTuple):
    amount: Decimal
    secondary: Decimal | None
    status: Literal["ok", "fallback", "missing"]


def select_amounts(
    amounts: Sequence[Decimal], label: str, layout: ColumnLayout
) -> AmountSelection:
    """Pick the transaction amount (and toll reimbursement) from a row.

    The last amount of a row is always the running balance and is never
    returned. Payouts ("Transferred to bank account") and account validation
    deposits report the column just before the balance. Ride rows in the
    six-column layout read ``[earnings, tolls, balance]`` from the tail; equal
    earnings and tolls is a text-duplication artifact and yields no tolls.
    Two amounts in that layout are earnings and balance with a blank
    refunds cell. A single amount cannot be split from the balance and is
    used as-is with ``status="fallback"``.
    """

    n = len(amounts)
    if n == 0:
        return AmountSelection(Decimal("0"), None, "missing")
    if n == 1:
        return AmountSelection(amounts[0], None, "fallback")

    lowered = label.lower()
    if any(m in lowered for m in _PAYOUT_MARKERS + _VALIDATION_MARKERS):
        return AmountSelection(amounts[-2], None, "ok")

    if layout is ColumnLayout.SIX_COLUMN:
        if n >= 3:
            earnings, tolls = amounts[-3], amounts[-2]
            if earnings == tolls or tolls <= 0:
                return AmountSelection(earnings, None, "ok")
            return AmountSelection(earnings, tolls, "ok")
        # Earnings and balance only: no refunds/expenses cell on this row.
        return AmountSelection(amounts[0], None, "ok")

    return AmountSelection(amounts[-2], None, "ok")


# ---------------------------------------------------------------------------
# Row-group fold
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Amount:
    value: Decimal
    line: int
    fragment: int


@dataclass(frozen=True, slots=True)
class _Scan:
    date_text: str | None = None
    time_text: str | None = None
    event_text: str | None = None
    amounts: tuple[_Amount, ...] = ()
    label_parts: tuple[str, ...] = ()


def _amounts_in(text: str, line: int, fragment: int) -> tuple[_Amount, ...]:
    found: list[_Amount] = []
    for m in _AMOUNT_RE.finditer(text):
        try:
            found.append(_Amount(_parse_amount(m.group(0)), line, fragment))
        except InvalidOperation:
            continue
    return tuple(found)


def _step(scan: _Scan, item: tuple[int, int, str]) -> _Scan:
    line, fragment, raw = item
    text = raw.strip()
    collecting = line == 0 and scan.event_text is None

    if POSTED_DATE_RE.match(text) and scan.date_text is None:
        return replace(scan, date_text=text)
    if _TIME_RE.match(text) and scan.time_text is None:
        return replace(scan, time_text=text)
    if _EVENT_RE.match(text) and scan.event_text is None:
        return replace(scan, event_text=text)
    if _AMOUNTS_ONLY_RE.match(text):
        if collecting:
            return replace(scan, amounts=scan.amounts + _amounts_in(text, line, fragment))
        return scan
    m = _TRAILING_AMOUNTS_RE.search(text)
    if m:
        head = text[: m.start()].strip()
        amounts = scan.amounts
        if collecting:
            amounts += _amounts_in(m.group(0), line, fragment)
        parts = scan.label_parts + ((head,) if head else ())
        return replace(scan, amounts=amounts, label_parts=parts)
    return replace(scan, label_parts=scan.label_parts + (text,))


def _scan(group: RowGroup) -> _Scan:
    items = (
        (line, fragment, tok.text)
        for line, row in enumerate(group.rows)
        for fragment, tok in enumerate(row)
    )
    return reduce(_step, items, _Scan())


def _posted_at(scan: _Scan, period: StatementPeriod, group: RowGroup):
    if scan.date_text is None or scan.time_text is None:
        missing = "date" if scan.date_text is None else "time"
        raise RowParseFailure(group.index, f"no posted {missing} found", group.text)

    dm = POSTED_DATE_RE.match(scan.date_text)
    tm = _TIME_RE.match(scan.time_text)
    assert dm is not None and tm is not None  # matched during the scan
    month = month_number(dm.group(1))
    if month is None:
        raise RowParseFailure(group.index, f"unknown month {dm.group(1)!r}", group.text)
    year, warning = infer_year(month, period, row_index=group.index)
    try:
        hour, minute = _to_24h(int(tm.group(1)), int(tm.group(2)), tm.group(3))
        posted = datetime(year, month, int(dm.group(2)), hour, minute)
    except ValueError as exc:
        raise RowParseFailure(group.index, f"invalid posted date: {exc}", group.text) from exc
    return posted, warning


def _event_at(scan: _Scan, period: StatementPeriod, group: RowGroup):
    if scan.event_text is None:
        return None, None
    em = _EVENT_RE.match(scan.event_text)
    assert em is not None
    month = month_number(em.group(1))
    if month is None:
        _log.warning("row %d: unknown event month %r", group.index, em.group(1))
        return None, None
    year, warning = infer_year(month, period, row_index=group.index)
    try:
        hour, minute = _to_24h(int(em.group(3)), int(em.group(4)), em.group(5))
        return datetime(year, month, int(em.group(2)), hour, minute), warning
    except ValueError as exc:
        _log.warning("row %d: invalid event date %r: %s", group.index, scan.event_text, exc)
        return None, None


def parse_row_group(
    group: RowGroup,
    layout: ColumnLayout,
    period: StatementPeriod,
    *,
    imported_at: datetime | None = None,
) -> tuple[Transaction, list[StatementWarning]]:
    """Fold one row-group into a transaction.

    Raises :class:`RowParseFailure` when no posted date/time can be read; all
    other problems degrade to warnings and the manual-verification flag.
    """

    scan = _scan(group)
    warnings: list[StatementWarning] = []

    posted_at, posted_warning = _posted_at(scan, period, group)
    if posted_warning is not None:
        warnings.append(posted_warning)

    event_at, event_warning = _event_at(scan, period, group)
    if event_warning is not None:
        warnings.append(event_warning)
    if event_at is not None and event_at > posted_at:
        warnings.append(
            EventAfterPostingWarning(row_index=group.index, event_at=event_at, posted_at=posted_at)
        )
        event_at = None

    label = " ".join(" ".join(scan.label_parts).split())
    selection = select_amounts([a.value for a in scan.amounts], label, layout)
    if selection.status == "missing":
        warnings.append(AmountMissingWarning(row_index=group.index))
    elif selection.status == "fallback":
        warnings.append(
            AmountFallbackWarning(row_index=group.index, amounts_found=len(scan.amounts))
        )

    # Without an event time, shift assignment falls back to the posting time,
    # which can trail the trip by hours (tips especially).
    needs_verification = event_at is None or selection.status != "ok" or bool(warnings)

    tx = Transaction(
        posted_at=posted_at,
        event_at=event_at,
        label=label,
        amount=selection.amount,
        secondary_amount=selection.secondary,
        needs_manual_verification=needs_verification,
        statement_period=period.label,
        imported_at=imported_at or datetime.now(UTC),
        source_row_index=group.index,
    )
    return tx, warnings


# ---------------------------------------------------------------------------
# Document entry points
# ---------------------------------------------------------------------------


def _pages(
    raw: Sequence[PositionedToken] | Iterable[Sequence[PositionedToken]],
) -> list[Sequence[PositionedToken]]:
    items = list(raw)
    if not items:
        return []
    if isinstance(items[0], PositionedToken):
        return [items]  # type: ignore[list-item]
    return items  # type: ignore[return-value]


def parse_statement(
    raw_tokens: Sequence[PositionedToken] | Iterable[Sequence[PositionedToken]],
    period: StatementPeriod,
    *,
    imported_at: datetime | None = None,
) -> ParseResult:
    """Parse a statement document into transactions.

    ``raw_tokens`` is either one page of fragments or an iterable of pages
    (one fragment sequence per page, in page order). Pages are ordered
    independently, then read as one continuous table.

    A document with no fragments yields an empty result. A document with
    fragments but no recognizable table header raises
    :class:`~rideshare_import.errors.DocumentStructureFailure`. Rows that fail
    to parse are dropped and listed in ``ParseResult.failures``.
    """

    rows = [row for page in _pages(raw_tokens) for row in group_rows(page)]
    if not rows:
        return ParseResult(transactions=(), warnings=(), failures=(), layout=None, period=period)

    layout = find_header_layout(rows)
    stamp = imported_at or datetime.now(UTC)

    transactions: list[Transaction] = []
    warnings: list[StatementWarning] = []
    failures: list[RowParseFailure] = []
    for group in split_row_groups(rows):
        try:
            tx, row_warnings = parse_row_group(group, layout, period, imported_at=stamp)
        except RowParseFailure as exc:
            _log.warning("dropping %s (%s)", exc, exc.text)
            failures.append(exc)
            continue
        for w in row_warnings:
            _log.info("row %d: %s", w.row_index, w.message)
        transactions.append(tx)
        warnings.extend(row_warnings)

    _log.info(
        "parsed %d transaction(s) from %s (%s layout, %d row failure(s))",
        len(transactions),
        period.label,
        layout.name,
        len(failures),
    )
    return ParseResult(
        transactions=tuple(transactions),
        warnings=tuple(warnings),
        failures=tuple(failures),
        layout=layout,
        period=period,
    )


def parse_statement_period(text: str) -> StatementPeriod | None:
    """Find ``"Oct 13, 2025 4 AM - Oct 20, 2025 4 AM"`` in page text."""

    m = _PERIOD_RE.search(text)
    if not m:
        return None
    start_month = month_number(m.group(1))
    end_month = month_number(m.group(4))
    if start_month is None or end_month is None:
        return None
    try:
        start = date(int(m.group(3)), start_month, int(m.group(2)))
        end = date(int(m.group(6)), end_month, int(m.group(5)))
        return StatementPeriod(start=start, end=end)
    except ValueError:
        return None


__all__ = [
    "AmountSelection",
    "month_number",
    "select_amounts",
    "parse_row_group",
    "parse_statement",
    "parse_statement_period",
]
