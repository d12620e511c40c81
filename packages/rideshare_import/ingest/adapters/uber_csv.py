"""Adapter for Uber statements exported (or transcribed) as CSV.

The CSV already has its columns split, so there is nothing to recover from
coordinates. Each data row is laid out as synthetic positioned tokens that
mirror what the PDF adapter yields for the same row, and the regular
statement parser runs on them unchanged.

Contract
--------
- A header row must contain ``Processed``, ``Event`` and ``Your earnings``;
  ``Refunds & Expenses`` selects the six-column layout. ``Payouts`` and
  ``Balance`` follow. An optional ``Event date`` column holds the trip time
  (``"Aug 8 11:50 PM"``).
- Lines above the header are preamble; their text is returned separately so
  the statement period can be read from it.
- ``Processed`` cells read ``"Sat, Aug 9 12:24 AM"``.
- Money cells may omit the ``$`` sign; empty cells are skipped like empty PDF
  cells.

If no header row exists, :class:`DocumentStructureFailure` is raised.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from os import PathLike
from pathlib import Path
from typing import TextIO

from ...errors import DocumentStructureFailure
from ...layout import is_header_row
from ...models import PositionedToken

EVENT_DATE_COLUMN = "Event date"
MONEY_COLUMNS = ("Your earnings", "Refunds & Expenses", "Payouts", "Balance")

_PROCESSED_RE = re.compile(r"^(.*?)\s+(\d{1,2}:\d{2}\s*[AP]M)$", re.IGNORECASE)

# Synthetic page geometry: one transaction per 20pt band, event line 10pt
# below its first line (well outside the 5pt row tolerance).
_TOP = 10_000.0
_ROW_STEP = 20.0
_LINE_STEP = 10.0
_COL_STEP = 50.0


def _money(cell: str) -> str | None:
    raw = cell.strip()
    if not raw:
        return None
    if "$" in raw:
        return raw
    try:
        value = Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return raw
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):.2f}"


def _split_header(rows: Sequence[Sequence[str]]) -> tuple[int, list[str]]:
    for idx, row in enumerate(rows):
        cells = [c.strip() for c in row]
        if is_header_row(" ".join(cells)):
            return idx, cells
    raise DocumentStructureFailure(
        "Uber CSV: no header row with 'Processed', 'Event' and 'Your earnings' columns"
    )


def _row_tokens(record: dict[str, str], money_cols: Sequence[str], y: float) -> list[PositionedToken]:
    tokens: list[PositionedToken] = []
    x = 0.0

    def put(text: str, line_y: float = y) -> None:
        nonlocal x
        tokens.append(PositionedToken(text=text, x=x, y=line_y))
        x += _COL_STEP

    processed = (record.get("Processed") or "").strip()
    m = _PROCESSED_RE.match(processed)
    if m:
        put(m.group(1).strip())
        put(m.group(2).upper())
    elif processed:
        put(processed)

    label = (record.get("Event") or "").strip()
    if label:
        put(label)

    for col in money_cols:
        amount = _money(record.get(col) or "")
        if amount is not None:
            put(amount)

    event_date = (record.get(EVENT_DATE_COLUMN) or "").strip()
    if event_date:
        tokens.append(PositionedToken(text=event_date, x=2 * _COL_STEP, y=y - _LINE_STEP))
    return tokens


def tokens_from_csv(file: TextIO) -> tuple[list[PositionedToken], str]:
    """Return ``(tokens, preamble_text)`` for an open CSV file."""

    rows = list(csv.reader(file))
    header_idx, header = _split_header(rows)
    preamble = "\n".join(" ".join(c for c in row if c.strip()) for row in rows[:header_idx])
    money_cols = [c for c in MONEY_COLUMNS if c in header]

    tokens = [
        PositionedToken(text=name, x=i * _COL_STEP, y=_TOP)
        for i, name in enumerate(c for c in header if c != EVENT_DATE_COLUMN)
    ]
    y = _TOP
    for row in rows[header_idx + 1 :]:
        if not any(c.strip() for c in row):
            continue
        y -= _ROW_STEP
        record = dict(zip(header, row, strict=False))
        tokens.extend(_row_tokens(record, money_cols, y))
    return tokens, preamble


def tokens_from_text(text: str) -> tuple[list[PositionedToken], str]:
    return tokens_from_csv(io.StringIO(text, newline=""))


def extract_tokens(path: str | PathLike[str]) -> tuple[list[PositionedToken], str]:
    with Path(path).open(encoding="utf-8-sig", newline="") as f:
        return tokens_from_csv(f)


__all__ = [
    "EVENT_DATE_COLUMN",
    "MONEY_COLUMNS",
    "tokens_from_csv",
    "tokens_from_text",
    "extract_tokens",
]
