"""Adapter for Uber weekly statement PDFs.

Extraction is done with pdfplumber. Each page yields its word fragments as
:class:`~rideshare_import.models.PositionedToken` values. pdfplumber measures
``top`` downward from the page top, so it is flipped into PDF user space
(``y = page.height - top``) where larger ``y`` means higher on the page.

``keep_blank_chars`` keeps single-space separated words together
(``"Sat, Aug 9"``, ``"12:24 AM"``) while the wider gaps between table columns
still split fragments.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

import pdfplumber

from ...errors import DocumentStructureFailure
from ...logging_setup import get_logger
from ...models import PositionedToken

_log = get_logger("rideshare_import.ingest.uber_pdf")

# Horizontal gap (points) under which characters join into one fragment.
X_TOLERANCE = 3


def _open(path: str | PathLike[str]):
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"statement PDF not found: {p}")
    try:
        return pdfplumber.open(p)
    except Exception as exc:
        raise DocumentStructureFailure(f"could not open {p.name} as a PDF: {exc}") from exc


def _page_tokens(page) -> list[PositionedToken]:
    words = page.extract_words(keep_blank_chars=True, x_tolerance=X_TOLERANCE) or []
    height = float(page.height)
    tokens: list[PositionedToken] = []
    for w in words:
        text = (w.get("text") or "").strip()
        if not text:
            continue
        tokens.append(PositionedToken(text=text, x=float(w["x0"]), y=height - float(w["top"])))
    return tokens


def extract_tokens(path: str | PathLike[str]) -> list[list[PositionedToken]]:
    """Return one token list per page, in page order."""

    with _open(path) as pdf:
        pages = [_page_tokens(page) for page in pdf.pages]
    _log.debug("extracted %d page(s) from %s", len(pages), Path(path).name)
    if not any(pages):
        raise DocumentStructureFailure(
            f"{Path(path).name} has no extractable text (scanned statement?)"
        )
    return pages


def extract_first_page_text(path: str | PathLike[str]) -> str:
    """Plain text of page one, where the statement period is printed."""

    with _open(path) as pdf:
        if not pdf.pages:
            return ""
        return pdf.pages[0].extract_text() or ""


__all__ = ["X_TOLERANCE", "extract_tokens", "extract_first_page_text"]
