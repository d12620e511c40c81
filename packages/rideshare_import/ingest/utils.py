"""Ingest utilities shared by CLI commands and workflows.

Exposes :func:`load_statement`, which picks the extraction adapter by file
suffix and resolves the statement period from the document itself unless the
caller supplies one.
"""

from __future__ import annotations

from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from ..errors import DocumentStructureFailure
from ..models import PositionedToken, StatementPeriod
from ..parser import parse_statement_period

SUPPORTED_SUFFIXES = (".pdf", ".csv")


@dataclass(frozen=True, slots=True)
class LoadedStatement:
    source: Path
    pages: list[list[PositionedToken]]
    period: StatementPeriod


def load_statement(
    path: str | PathLike[str], *, period: StatementPeriod | None = None
) -> LoadedStatement:
    """Extract positioned tokens and the statement period from ``path``.

    Raises :class:`DocumentStructureFailure` for unsupported files and when no
    period is given and none can be found in the document.
    """

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".pdf":
        from .adapters.uber_pdf import extract_first_page_text, extract_tokens

        pages = extract_tokens(p)
        period_text = extract_first_page_text(p) if period is None else ""
    elif suffix == ".csv":
        from .adapters.uber_csv import extract_tokens as csv_tokens

        tokens, period_text = csv_tokens(p)
        pages = [tokens]
    else:
        raise DocumentStructureFailure(
            f"unsupported statement file {p.name!r}; expected one of {', '.join(SUPPORTED_SUFFIXES)}"
        )

    if period is None:
        period = parse_statement_period(period_text)
        if period is None:
            raise DocumentStructureFailure(
                f"no statement period found in {p.name}; pass it explicitly "
                "(e.g. 'Aug 4, 2025 - Aug 11, 2025')"
            )
    return LoadedStatement(source=p, pages=pages, period=period)


__all__ = ["SUPPORTED_SUFFIXES", "LoadedStatement", "load_statement"]
