"""Quick-select date ranges for the portfolio view."""
from __future__ import annotations

from datetime import date

import pandas as pd

PERIOD_MONTHS = {
    "1M": 1,
    "3M": 3,
    "6M": 6,
    "12M": 12,
    "36M": 36,
    "60M": 60,
}
PERIODS = (*PERIOD_MONTHS, "YTD", "MAX")


def resolve_period(period: str, min_date: date, max_date: date) -> tuple[date, date]:
    """Return the (start, end) of a quick-select period ending at max_date, never before min_date."""
    key = period.strip().upper()
    if key == "MAX":
        start = min_date
    elif key == "YTD":
        start = date(max_date.year, 1, 1)
    elif key in PERIOD_MONTHS:
        start = (pd.Timestamp(max_date) - pd.DateOffset(months=PERIOD_MONTHS[key])).date()
    else:
        raise ValueError(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")
    return max(start, min_date), max_date
