import pytest

from rideshare_import.errors import DocumentStructureFailure
from rideshare_import.layout import (
    detect_column_layout,
    find_header_layout,
    group_rows,
    row_text,
    split_row_groups,
)
from rideshare_import.models import ColumnLayout, PositionedToken

from tests.helpers.tokens import line, ride, statement_page


def _tok(text: str, x: float, y: float) -> PositionedToken:
    return PositionedToken(text=text, x=x, y=y)


def test_group_rows_orders_top_to_bottom_then_left_to_right():
    tokens = [
        _tok("right-low", 200, 100),
        _tok("left-high", 10, 300),
        _tok("left-low", 10, 102),  # within tolerance of y=100
        _tok("right-high", 200, 298),
    ]
    rows = group_rows(tokens)
    assert [row_text(r) for r in rows] == ["left-high right-high", "left-low right-low"]


def test_group_rows_does_not_depend_on_input_order():
    tokens = statement_page([ride("Sat, Aug 9", "12:24 AM", ["$15.00", "$17.00"])])
    forward = [row_text(r) for r in group_rows(tokens)]
    backward = [row_text(r) for r in group_rows(list(reversed(tokens)))]
    assert forward == backward


def test_group_rows_drops_footer_band():
    tokens = line(500, "Tip", "$3.00") + [_tok("2 of 3", 500, 30), _tok("$999.00", 40, 32)]
    rows = group_rows(tokens)
    assert [row_text(r) for r in rows] == ["Tip $3.00"]


def test_group_rows_empty_input():
    assert group_rows([]) == []
    assert group_rows([_tok("   ", 0, 0)]) == []


def test_detect_column_layout_six_when_refunds_column_present():
    assert detect_column_layout("Processed Event Your earnings Payouts Balance") is (
        ColumnLayout.FIVE_COLUMN
    )
    assert detect_column_layout(
        "Processed Event Your earnings Refunds & Expenses Payouts Balance"
    ) is ColumnLayout.SIX_COLUMN
    # HTML-escaped ampersand from some extractors
    assert detect_column_layout(
        "Processed Event Your earnings Refunds &amp; Expenses Payouts Balance"
    ) is ColumnLayout.SIX_COLUMN


def test_find_header_layout_raises_without_header():
    rows = group_rows(line(700, "Sat, Aug 9", "12:24 AM", "UberX", "$15.00"))
    with pytest.raises(DocumentStructureFailure):
        find_header_layout(rows)


def test_split_row_groups_skips_preamble_and_repeated_headers():
    page1 = statement_page(
        [
            ride("Sat, Aug 9", "12:24 AM", ["$15.00", "$17.00"], event="Aug 8 11:50 PM"),
            ride("Sat, Aug 9", "1:05 AM", ["$3.00", "$20.00"], label="Tip"),
        ],
        preamble=("Sat, Aug 2",),
    )
    page2 = statement_page(
        [ride("Sun, Aug 10", "9:00 PM", ["$8.00", "$28.00"])], preamble=()
    )
    rows = group_rows(page1) + group_rows(page2)

    groups = split_row_groups(rows)

    assert [g.index for g in groups] == [0, 1, 2]
    assert len(groups[0].rows) == 2  # posting line + event line
    assert row_text(groups[0].rows[1]) == "Aug 8 11:50 PM"
    assert groups[2].rows[0][0].text == "Sun, Aug 10"


def test_split_row_groups_accepts_split_tuesday():
    rows = group_rows(statement_page([ride("T ue, Aug 5", "7:10 PM", ["$9.00", "$9.00"])]))
    groups = split_row_groups(rows)
    assert len(groups) == 1
