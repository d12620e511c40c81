"""Reading-order recovery for positioned statement text.

Statement PDFs come out of text extraction as loose fragments with page
coordinates. This module turns them into physical lines (top-to-bottom,
left-to-right), drops pagination footers, decides which column schema the
transaction table uses, and cuts the table into per-transaction row-groups.

Nothing here parses field values; see :mod:`rideshare_import.parser`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import DocumentStructureFailure
from .models import ColumnLayout, PositionedToken

# Vertical distance under which two fragments share a physical line.
ROW_TOLERANCE = 5.0

_FOOTER_RE = re.compile(r"\d+\s+of\s+\d+$")

# "Sat, Aug 9"; extraction sometimes splits "Tue" into "T ue".
POSTED_DATE_RE = re.compile(
    r"^(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun|T\s+ue),\s+([A-Za-z]+)\s+(\d{1,2})$"
)

_REFUNDS_COLUMN_LABELS = ("Refunds & Expenses", "Refunds &amp; Expenses")

type Row = tuple[PositionedToken, ...]


@dataclass(frozen=True, slots=True)
class RowGroup:
    """Physical lines that make up one logical transaction."""

    index: int
    rows: tuple[Row, ...]

    @property
    def tokens(self) -> list[PositionedToken]:
        return [tok for row in self.rows for tok in row]

    @property
    def text(self) -> str:
        return " | ".join(row_text(row) for row in self.rows)


def row_text(row: Iterable[PositionedToken]) -> str:
    return " ".join(tok.text for tok in row)


def _footer_bands(tokens: Sequence[PositionedToken]) -> list[float]:
    return [tok.y for tok in tokens if _FOOTER_RE.search(tok.text.strip())]


def group_rows(tokens: Iterable[PositionedToken]) -> list[Row]:
    """Cluster one page of fragments into ordered physical lines.

    Fragments are clustered on ``y`` within :data:`ROW_TOLERANCE`. Any
    fragment sharing a vertical band with page-footer text (``"1 of 3"``) is
    removed along with it. Lines are returned top of page first, fragments
    within a line left to right. Empty input yields an empty list.
    """

    kept = [tok for tok in tokens if tok.text.strip()]
    bands = _footer_bands(kept)
    if bands:
        kept = [
            tok for tok in kept if not any(abs(tok.y - band) < ROW_TOLERANCE for band in bands)
        ]

    rows: list[list[PositionedToken]] = []
    # Descending y walks the page from the top; x breaks ties so clustering
    # does not depend on input order.
    for tok in sorted(kept, key=lambda t: (-t.y, t.x)):
        if rows and abs(rows[-1][0].y - tok.y) < ROW_TOLERANCE:
            rows[-1].append(tok)
        else:
            rows.append([tok])

    return [tuple(sorted(row, key=lambda t: t.x)) for row in rows]


def order_tokens(tokens: Iterable[PositionedToken]) -> list[PositionedToken]:
    """Return the fragments of one page flattened into reading order."""

    return [tok for row in group_rows(tokens) for tok in row]


# ---------------------------------------------------------------------------
# Column layout
# ---------------------------------------------------------------------------


def detect_column_layout(header_text: str) -> ColumnLayout:
    """Six columns when the refunds/expenses column is present, else five."""

    if any(label in header_text for label in _REFUNDS_COLUMN_LABELS):
        return ColumnLayout.SIX_COLUMN
    return ColumnLayout.FIVE_COLUMN


def is_header_row(text: str) -> bool:
    return "Processed" in text and "Event" in text and "Your earnings" in text


def find_header_layout(rows: Sequence[Row]) -> ColumnLayout:
    """Detect the layout from the first transaction-table header.

    Raises :class:`DocumentStructureFailure` when no header exists, since the
    rows cannot be interpreted without knowing which columns are present.
    """

    for row in rows:
        text = row_text(row)
        if is_header_row(text):
            return detect_column_layout(text)
    raise DocumentStructureFailure(
        "no transaction table header found (expected 'Processed', 'Event' and "
        "'Your earnings' on one line)"
    )


# ---------------------------------------------------------------------------
# Row-groups
# ---------------------------------------------------------------------------


def starts_transaction(row: Row) -> bool:
    return bool(row) and POSTED_DATE_RE.match(row[0].text.strip()) is not None


def split_row_groups(rows: Sequence[Row]) -> list[RowGroup]:
    """Cut table lines into transactions.

    Lines before the first header are page preamble and are ignored. A line
    whose first fragment is a weekday-prefixed date opens a new group; the
    lines that follow belong to it until the next one. Repeated headers on
    later pages are skipped. ``RowGroup.index`` numbers groups in document
    order.
    """

    groups: list[list[Row]] = []
    in_table = False
    for row in rows:
        text = row_text(row)
        if is_header_row(text):
            in_table = True
            continue
        if not in_table:
            continue
        if starts_transaction(row):
            groups.append([row])
        elif groups:
            groups[-1].append(row)

    return [RowGroup(index=i, rows=tuple(g)) for i, g in enumerate(groups)]


__all__ = [
    "ROW_TOLERANCE",
    "POSTED_DATE_RE",
    "Row",
    "RowGroup",
    "row_text",
    "group_rows",
    "order_tokens",
    "detect_column_layout",
    "is_header_row",
    "find_header_layout",
    "starts_transaction",
    "split_row_groups",
]
