from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from rideshare_import.errors import DocumentStructureFailure
from rideshare_import.ingest.adapters import uber_pdf
from rideshare_import.ingest.utils import load_statement
from rideshare_import.models import StatementPeriod


class _FakePage:
    height = 792.0

    def __init__(self, words: list[dict], text: str = "") -> None:
        self._words = words
        self._text = text

    def extract_words(self, **kwargs):
        assert kwargs == {"keep_blank_chars": True, "x_tolerance": uber_pdf.X_TOLERANCE}
        return self._words

    def extract_text(self):
        return self._text


class _FakePdf:
    def __init__(self, pages: list[_FakePage]) -> None:
        self.pages = pages

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _word(text: str, x0: float, top: float) -> dict:
    return {"text": text, "x0": x0, "top": top}


PAGE_WORDS = [
    _word("Processed", 40, 100),
    _word("Event", 110, 100),
    _word("Your earnings", 180, 100),
    _word("Payouts", 250, 100),
    _word("Balance", 320, 100),
    _word("Sat, Aug 9", 40, 130),
    _word("12:24 AM", 110, 130),
    _word("UberX", 180, 130),
    _word("$15.00", 250, 130),
    _word("$17.00", 320, 130),
    _word("Aug 8 11:50 PM", 180, 142),
    _word("  ", 400, 142),
    _word("1 of 1", 500, 770),
]


@pytest.fixture
def fake_pdf(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "statement.pdf"
    path.write_bytes(b"%PDF-1.7\n")
    page = _FakePage(PAGE_WORDS, text="Aug 4, 2025 4 AM - Aug 11, 2025 4 AM")
    monkeypatch.setattr(uber_pdf.pdfplumber, "open", lambda p: _FakePdf([page]))
    return path


def test_tokens_are_flipped_into_page_space(fake_pdf: Path):
    (page,) = uber_pdf.extract_tokens(fake_pdf)

    header = next(t for t in page if t.text == "Processed")
    event = next(t for t in page if t.text == "Aug 8 11:50 PM")
    assert header.y == 692.0
    assert event.y == 650.0
    assert header.y > event.y
    assert all(t.text.strip() for t in page)


def test_load_statement_parses_pdf_end_to_end(fake_pdf: Path):
    from rideshare_import.parser import parse_statement

    loaded = load_statement(fake_pdf)
    result = parse_statement(loaded.pages, loaded.period)

    assert loaded.period == StatementPeriod(start=date(2025, 8, 4), end=date(2025, 8, 11))
    (tx,) = result.transactions
    assert tx.amount == Decimal("15.00")
    assert tx.label == "UberX"


def test_pdf_without_text_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"%PDF-1.7\n")
    monkeypatch.setattr(uber_pdf.pdfplumber, "open", lambda p: _FakePdf([_FakePage([])]))

    with pytest.raises(DocumentStructureFailure, match="no extractable text"):
        uber_pdf.extract_tokens(path)


def test_unreadable_pdf_is_a_structure_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not a pdf")

    def boom(p):
        raise ValueError("bad xref")

    monkeypatch.setattr(uber_pdf.pdfplumber, "open", boom)

    with pytest.raises(DocumentStructureFailure):
        uber_pdf.extract_tokens(path)


def test_missing_pdf_raises_file_not_found(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        uber_pdf.extract_tokens(tmp_path / "absent.pdf")
