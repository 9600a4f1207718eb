"""Tests for spreadsheet cell coercion."""
from datetime import datetime

import pytest

from quantfolio.parsers.cells import (
    EPOCH,
    cell_text,
    is_valid_timestamp,
    normalize_label,
    parse_cell_date,
    parse_drawdown,
    parse_number,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (12.5, 12.5),
        ("1 234.56", 1234.56),
        ("1,234.56", 1234.56),
        ("1.234,56", 1234.56),
        ("617,00", 617.0),
        ("-60.00", -60.0),
        ("2 (66.67%)", 2.0),
        ("", None),
        ("n/a", None),
        (None, None),
        (float("nan"), None),
    ],
)
def test_parse_number(value, expected):
    assert parse_number(value) == expected


def test_parse_drawdown_compound_forms():
    assert parse_drawdown("60.00 (0.60%)") == (60.0, 0.6)
    assert parse_drawdown("12.34% (1 234.56)") == (1234.56, 12.34)
    assert parse_drawdown("12,34% (617,00)") == (617.0, 12.34)


def test_parse_drawdown_single_values():
    assert parse_drawdown(250.0) == (250.0, None)
    assert parse_drawdown("-250.00") == (250.0, None)
    assert parse_drawdown("5.5%") == (None, 5.5)
    assert parse_drawdown("") == (None, None)


def test_parse_cell_date_from_serial():
    assert parse_cell_date(45292) == datetime(2024, 1, 1)
    assert parse_cell_date(45292.5) == datetime(2024, 1, 1, 12, 0)


def test_parse_cell_date_from_strings():
    assert parse_cell_date("2024.01.02 10:00:00") == datetime(2024, 1, 2, 10, 0)
    assert parse_cell_date("2024-03-05") == datetime(2024, 3, 5)
    assert parse_cell_date("05.03.2024 08:30") == datetime(2024, 3, 5, 8, 30)


def test_invalid_dates_yield_epoch_sentinel():
    for value in ("", None, "not a date", float("nan")):
        parsed = parse_cell_date(value)
        assert parsed == EPOCH
        assert not is_valid_timestamp(parsed)


def test_labels_and_text():
    assert normalize_label("  Total Net Profit: ") == "total net profit"
    assert cell_text(3.0) == "3"
    assert cell_text(None) == ""
