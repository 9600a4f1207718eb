"""Coercion of loosely typed spreadsheet cells into numbers, dates and text."""
from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

EPOCH = datetime(1970, 1, 1)
EXCEL_UNIX_OFFSET_DAYS = 25569  # Serial of 1970-01-01 in the 1899-12-30 based spreadsheet calendar

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_PERCENT_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*%")
_DECIMAL_COMMA_RE = re.compile(r"(\d),(\d{1,2})(?!\d)")
_SPACES_RE = re.compile(r"\s+")

STRING_DATE_FORMATS = (
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
)


def is_blank(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def cell_text(value: Any) -> str:
    """Render a cell as stripped text; integral floats lose their ".0"."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_label(value: Any) -> str:
    """Lower-case a label cell and drop the trailing colon."""
    return cell_text(value).lower().rstrip(":").strip()


def _clean_numeric_text(text: str) -> str:
    compact = _SPACES_RE.sub("", text)
    if "," in compact and "." in compact:
        if compact.rfind(",") > compact.rfind("."):
            # 1.234,56
            return compact.replace(".", "").replace(",", ".")
        return compact.replace(",", "")
    return _DECIMAL_COMMA_RE.sub(r"\1.\2", compact).replace(",", "")


def parse_number(value: Any) -> float | None:
    """Return the first number found in a cell, or None when the cell holds none."""
    if isinstance(value, bool) or is_blank(value):
        return None
    if isinstance(value, numbers.Real):
        return float(value) if math.isfinite(value) else None
    match = _NUMBER_RE.search(_clean_numeric_text(str(value)))
    if not match:
        return None
    return float(match.group(0))


def parse_int(value: Any) -> int | None:
    number = parse_number(value)
    if number is None:
        return None
    return int(number)


def parse_drawdown(value: Any) -> tuple[float | None, float | None]:
    """
    Parse a drawdown cell into (absolute, percent).

    Accepts a bare number (absolute), a bare percentage, and the compound forms
    "12.34% (1 234.56)" and "1 234.56 (12.34%)".
    """
    if isinstance(value, bool) or is_blank(value):
        return None, None
    if isinstance(value, numbers.Real):
        number = parse_number(value)
        return (abs(number) if number is not None else None), None

    text = _clean_numeric_text(str(value))
    percent: float | None = None
    percent_match = _PERCENT_RE.search(text)
    if percent_match:
        percent = abs(float(percent_match.group(1)))
        text = text[: percent_match.start()] + text[percent_match.end():]

    absolute: float | None = None
    number_match = _NUMBER_RE.search(text)
    if number_match:
        absolute = abs(float(number_match.group(0)))
    return absolute, percent


def excel_serial_to_datetime(serial: float) -> datetime:
    """Convert a spreadsheet serial (epoch 1899-12-30) to a naive UTC datetime."""
    seconds = (serial - EXCEL_UNIX_OFFSET_DAYS) * 86400
    return EPOCH + timedelta(seconds=round(seconds))


def parse_cell_date(value: Any) -> datetime:
    """
    Parse a date cell.

    Numbers are spreadsheet serials, strings are tried against the tester's
    formats and then pandas. Anything unparseable yields EPOCH.
    """
    if isinstance(value, bool) or is_blank(value):
        return EPOCH
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return EPOCH
        return value.tz_localize(None).to_pydatetime() if value.tzinfo else value.to_pydatetime()
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, numbers.Real):
        if not math.isfinite(value):
            return EPOCH
        try:
            return excel_serial_to_datetime(float(value))
        except OverflowError:
            return EPOCH

    text = str(value).strip()
    if _NUMBER_RE.fullmatch(text):
        return parse_cell_date(float(text))
    for fmt in STRING_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return EPOCH
    if pd.isna(parsed):
        return EPOCH
    return parse_cell_date(parsed)


def is_valid_timestamp(value: datetime | None) -> bool:
    """A timestamp is usable only when it lies strictly after the epoch sentinel."""
    return value is not None and value > EPOCH


def day_key(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def month_key(value: datetime) -> str:
    return value.strftime("%Y-%m")
