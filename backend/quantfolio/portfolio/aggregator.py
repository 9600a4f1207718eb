"""
Combine normalized strategy curves into a portfolio and score a date window.

The combined curve is a carry-forward union: on every date any strategy has a
point, each strategy contributes its latest known cumulative profit. Risk
metrics are then computed on the requested window only, with the drawdown peak
reset to the window's first equity value.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from quantfolio.analytics.statistics import ProfitCurvePoint, _finite, calculate_drawdowns, max_drawdown
from quantfolio.core.config import settings
from quantfolio.core.exceptions import InvalidDateRangeError
from quantfolio.core.logging import logger
from quantfolio.data.reconciliation import StrategyRecord
from quantfolio.parsers.cells import day_key
from quantfolio.portfolio.weights import WeightMethod, calculate_weights

DateLike = date | datetime | str | None


@dataclass
class PortfolioStats:
    strategy_count: int = 0
    total_profit: float = 0.0
    total_profit_percent: float = 0.0
    annualized_return_percent: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    sharpe_ratio: float = 0.0
    calmar_ratio: float = 0.0
    real_initial_capital: float = 0.0
    start_date: str | None = None
    end_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PortfolioResult:
    curve: list[ProfitCurvePoint] = field(default_factory=list)
    window_curve: list[ProfitCurvePoint] = field(default_factory=list)
    stats: PortfolioStats = field(default_factory=PortfolioStats)
    forward_test_start_date: str | None = None


def _date_key(value: DateLike) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return day_key(value)
    try:
        parsed = pd.Timestamp(str(value))
    except (ValueError, TypeError) as exc:
        raise InvalidDateRangeError(value, None, reason=f"unparseable date {value!r}") from exc
    if pd.isna(parsed):
        raise InvalidDateRangeError(value, None, reason=f"unparseable date {value!r}")
    return day_key(parsed.to_pydatetime())


def combine_profit_curves(
    records: Sequence[StrategyRecord],
    weights: Mapping[int, float] | None = None,
) -> list[ProfitCurvePoint]:
    """Carry-forward sum of the strategies' cumulative profit, with drawdowns."""
    if not records:
        return []

    by_date: dict[str, list[tuple[int, float]]] = {}
    for index, record in enumerate(records):
        for point in record.profit_curve:
            by_date.setdefault(point.date, []).append((index, point.profit))

    factors = [1.0 if weights is None else weights.get(r.magic_number, 0.0) for r in records]
    last_known = [0.0] * len(records)
    combined: list[ProfitCurvePoint] = []
    for day in sorted(by_date):
        for index, profit in by_date[day]:
            last_known[index] = profit
        total = sum(profit * factor for profit, factor in zip(last_known, factors))
        combined.append(ProfitCurvePoint(date=day, profit=total))
    return calculate_drawdowns(combined)


def _window_curve(window: Sequence[ProfitCurvePoint], capital: float) -> tuple[list[ProfitCurvePoint], float, float]:
    """Window points with drawdown measured from the window's own running peak."""
    points: list[ProfitCurvePoint] = []
    peak_equity = capital + window[0].profit
    worst_dollars = 0.0
    worst_percent = 0.0
    for point in window:
        equity = capital + point.profit
        peak_equity = max(peak_equity, equity)
        gap = peak_equity - equity
        worst_dollars = max(worst_dollars, gap)
        if peak_equity > 0:
            worst_percent = max(worst_percent, gap / peak_equity * 100)
        points.append(ProfitCurvePoint(date=point.date, profit=point.profit, drawdown=gap))
    return points, worst_dollars, worst_percent


def _annualized_return(total_percent: float, first: str, last: str, days_per_year: float) -> float:
    years = (pd.Timestamp(last) - pd.Timestamp(first)).days / days_per_year
    if years <= 0:
        return total_percent
    growth = 1 + total_percent / 100
    if growth <= 0:
        return -100.0
    return (growth ** (1 / years) - 1) * 100


def _daily_sharpe(equity: pd.Series, trading_days: int) -> float:
    returns = equity.pct_change().dropna()
    returns = returns[np.isfinite(returns)]
    if len(returns) < 2:
        return 0.0
    std = np.std(returns.values)
    if std == 0:
        return 0.0
    return float(np.mean(returns.values) / std * math.sqrt(trading_days))


def aggregate_portfolio(
    records: Sequence[StrategyRecord],
    start_date: DateLike = None,
    end_date: DateLike = None,
    *,
    weight_method: WeightMethod | str | None = None,
    target_drawdown: float = settings.TARGET_DRAWDOWN,
    capital_ratio: float = settings.DRAWDOWN_CAPITAL_RATIO,
    days_per_year: float = settings.DAYS_PER_YEAR,
    trading_days: int = settings.TRADING_DAYS_PER_YEAR,
) -> PortfolioResult:
    """Combined curve and window statistics for the selected strategies."""
    start_key = _date_key(start_date)
    end_key = _date_key(end_date)
    if start_key and end_key and start_key > end_key:
        raise InvalidDateRangeError(start_date, end_date)

    if not records:
        return PortfolioResult()

    weights = None
    if weight_method is not None:
        # Scaled so equal weighting reproduces the plain sum of strategies.
        weights = {magic: w * len(records) for magic, w in calculate_weights(records, weight_method).items()}

    curve = combine_profit_curves(records, weights)
    forward_starts = [r.forward_test_start for r in records if r.forward_test_start is not None]
    forward_start = day_key(min(forward_starts)) if forward_starts else None

    overall_drawdown = max_drawdown(curve)
    if overall_drawdown > 0 and capital_ratio > 0:
        capital = overall_drawdown / capital_ratio
    else:
        capital = target_drawdown * len(records)

    window = [
        point
        for point in curve
        if (start_key is None or point.date >= start_key) and (end_key is None or point.date <= end_key)
    ]
    stats = PortfolioStats(strategy_count=len(records), real_initial_capital=_finite(capital))
    if not window:
        logger.info("Portfolio window is empty", extra={"start_date": start_key, "end_date": end_key})
        return PortfolioResult(curve=curve, stats=stats, forward_test_start_date=forward_start)

    window_points, window_dd, window_dd_percent = _window_curve(window, capital)
    start_equity = capital + window[0].profit
    end_equity = capital + window[-1].profit
    total_percent = (end_equity - start_equity) / start_equity * 100 if start_equity else 0.0

    stats.start_date = window[0].date
    stats.end_date = window[-1].date
    stats.total_profit = _finite(end_equity - start_equity)
    stats.total_profit_percent = _finite(total_percent)
    stats.max_drawdown = _finite(window_dd)
    stats.max_drawdown_percent = _finite(window_dd_percent)

    if len(window) >= 2:
        annualized = _annualized_return(total_percent, window[0].date, window[-1].date, days_per_year)
        stats.annualized_return_percent = _finite(annualized)
        stats.calmar_ratio = _finite(annualized / window_dd_percent) if window_dd_percent > 0 else 0.0
        equity = pd.Series([capital + point.profit for point in window], dtype=float)
        stats.sharpe_ratio = _finite(_daily_sharpe(equity, trading_days))
    else:
        stats.annualized_return_percent = stats.total_profit_percent

    logger.debug(
        "Portfolio aggregated",
        extra={"strategies": len(records), "points": len(curve), "window_points": len(window)},
    )
    return PortfolioResult(
        curve=curve,
        window_curve=window_points,
        stats=stats,
        forward_test_start_date=forward_start,
    )
