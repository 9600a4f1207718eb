"""
Performance statistics computed from transaction lists.

Everything here is a pure function of its inputs: summaries printed by the
strategy tester are never consulted, every figure is recomputed from trades.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Iterable, Sequence

import numpy as np

from quantfolio.core.config import settings
from quantfolio.parsers.cells import day_key, month_key
from quantfolio.parsers.types import Transaction


def _finite(value: float) -> float:
    """Clamp NaN and infinities to 0.0 so no degenerate ratio leaks into output."""
    value = float(value)
    return value if math.isfinite(value) else 0.0


@dataclass(frozen=True, slots=True)
class ProfitCurvePoint:
    date: str  # YYYY-MM-DD
    profit: float
    drawdown: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "profit": self.profit, "drawdown": self.drawdown}


@dataclass(frozen=True, slots=True)
class CalculatedStatistics:
    total_net_profit: float
    total_gross_profit: float
    total_gross_loss: float
    profit_factor: float
    expected_payoff: float

    max_drawdown: float
    max_drawdown_percent: float

    total_trades: int
    profit_trades: int
    loss_trades: int
    win_rate: float

    sharpe_ratio: float

    largest_profit_trade: float
    largest_loss_trade: float
    average_profit_trade: float
    average_loss_trade: float

    max_consecutive_wins: int
    max_consecutive_losses: int
    max_consecutive_profit: float
    max_consecutive_loss: float

    @classmethod
    def zero(cls) -> "CalculatedStatistics":
        return cls(**{f.name: 0 if f.type == "int" else 0.0 for f in fields(cls)})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# Currency-denominated fields; everything else is a count, ratio or percentage.
MONETARY_FIELDS = (
    "total_net_profit",
    "total_gross_profit",
    "total_gross_loss",
    "expected_payoff",
    "max_drawdown",
    "largest_profit_trade",
    "largest_loss_trade",
    "average_profit_trade",
    "average_loss_trade",
    "max_consecutive_profit",
    "max_consecutive_loss",
)


def trades_only(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [tx for tx in transactions if tx.is_trade]


def build_profit_curve(transactions: Sequence[Transaction]) -> list[ProfitCurvePoint]:
    """
    Cumulative profit sampled once per calendar day.

    Balance and credit rows are ignored. Each day holds the cumulative value
    after its last transaction, so the curve is a daily close.
    """
    daily: dict[str, float] = {}
    cumulative = 0.0
    for tx in sorted(trades_only(transactions), key=lambda t: t.open_time):
        cumulative += tx.profit
        daily[day_key(tx.open_time)] = cumulative
    return [ProfitCurvePoint(date=day, profit=profit) for day, profit in sorted(daily.items())]


def calculate_drawdowns(curve: Sequence[ProfitCurvePoint]) -> list[ProfitCurvePoint]:
    """Attach the peak-to-current gap to each point. The peak starts at zero profit."""
    result: list[ProfitCurvePoint] = []
    peak = 0.0
    for point in curve:
        peak = max(peak, point.profit)
        result.append(ProfitCurvePoint(date=point.date, profit=point.profit, drawdown=peak - point.profit))
    return result


def max_drawdown(curve: Sequence[ProfitCurvePoint]) -> float:
    return max((point.drawdown for point in curve), default=0.0)


def monthly_profits(transactions: Iterable[Transaction]) -> dict[str, float]:
    """Sum of trade profits per YYYY-MM, in chronological order."""
    months: dict[str, float] = {}
    for tx in trades_only(transactions):
        key = month_key(tx.open_time)
        months[key] = months.get(key, 0.0) + tx.profit
    return dict(sorted(months.items()))


def _max_drawdown_percent(curve: Sequence[ProfitCurvePoint], initial_balance: float) -> float:
    if not curve or initial_balance <= 0:
        return 0.0
    peak = initial_balance
    worst = 0.0
    for point in curve:
        equity = initial_balance + point.profit
        peak = max(peak, equity)
        if peak > 0:
            worst = max(worst, (peak - equity) / peak * 100)
    return worst


def _monthly_sharpe(trades: Sequence[Transaction], initial_balance: float) -> float:
    """Annualized Sharpe from monthly percentage returns (population std, zero risk-free rate)."""
    if initial_balance <= 0:
        return 0.0
    returns = np.array([profit / initial_balance * 100 for profit in monthly_profits(trades).values()])
    if len(returns) < 2:
        return 0.0
    std = np.std(returns)
    if std == 0:
        return 0.0
    return float(np.mean(returns) / std * np.sqrt(12))


def _streaks(trades: Sequence[Transaction]) -> tuple[int, int, float, float]:
    # Zero-profit trades fall through both branches: they neither extend nor reset a streak.
    win_count = loss_count = 0
    win_amount = loss_amount = 0.0
    max_wins = max_losses = 0
    max_win_amount = max_loss_amount = 0.0

    for trade in trades:
        if trade.profit > 0:
            win_count += 1
            loss_count = 0
            win_amount += trade.profit
            loss_amount = 0.0
            max_wins = max(max_wins, win_count)
            max_win_amount = max(max_win_amount, win_amount)
        elif trade.profit < 0:
            loss_count += 1
            win_count = 0
            loss_amount += abs(trade.profit)
            win_amount = 0.0
            max_losses = max(max_losses, loss_count)
            max_loss_amount = max(max_loss_amount, loss_amount)

    return max_wins, max_losses, max_win_amount, max_loss_amount


def calculate_statistics(
    transactions: Sequence[Transaction],
    initial_balance: float = settings.INITIAL_BALANCE,
) -> CalculatedStatistics:
    """Compute the full statistics snapshot; an empty trade list yields all zeros."""
    trades = trades_only(transactions)
    if not trades:
        return CalculatedStatistics.zero()

    winners = [tx.profit for tx in trades if tx.profit > 0]
    losers = [tx.profit for tx in trades if tx.profit < 0]

    net_profit = sum(tx.profit for tx in trades)
    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    # Without losing trades the ratio is undefined; report gross profit instead.
    profit_factor = gross_profit / gross_loss if gross_loss > 0 else gross_profit

    curve = calculate_drawdowns(build_profit_curve(transactions))
    max_wins, max_losses, max_win_amount, max_loss_amount = _streaks(trades)

    return CalculatedStatistics(
        total_net_profit=_finite(net_profit),
        total_gross_profit=_finite(gross_profit),
        total_gross_loss=_finite(gross_loss),
        profit_factor=_finite(profit_factor),
        expected_payoff=_finite(net_profit / len(trades)),
        max_drawdown=_finite(max_drawdown(curve)),
        max_drawdown_percent=_finite(_max_drawdown_percent(curve, initial_balance)),
        total_trades=len(trades),
        profit_trades=len(winners),
        loss_trades=len(losers),
        win_rate=_finite(len(winners) / len(trades) * 100),
        sharpe_ratio=_finite(_monthly_sharpe(trades, initial_balance)),
        largest_profit_trade=_finite(max(winners, default=0.0)),
        largest_loss_trade=_finite(abs(min(losers, default=0.0))),
        average_profit_trade=_finite(gross_profit / len(winners)) if winners else 0.0,
        average_loss_trade=_finite(gross_loss / len(losers)) if losers else 0.0,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        max_consecutive_profit=_finite(max_win_amount),
        max_consecutive_loss=_finite(max_loss_amount),
    )


def drawdown_scale_factor(observed_max_drawdown: float, target_drawdown: float = settings.TARGET_DRAWDOWN) -> float:
    """Factor that maps the observed max drawdown onto the target; 1.0 when nothing was observed."""
    if observed_max_drawdown == 0 or not math.isfinite(observed_max_drawdown):
        return 1.0
    return target_drawdown / observed_max_drawdown


def normalize_profit_curve(
    curve: list[ProfitCurvePoint],
    observed_max_drawdown: float,
    target_drawdown: float = settings.TARGET_DRAWDOWN,
) -> list[ProfitCurvePoint]:
    """Rescale a curve so its max drawdown equals the target. Identity when there is nothing to scale."""
    if not curve or observed_max_drawdown == 0:
        return curve
    factor = drawdown_scale_factor(observed_max_drawdown, target_drawdown)
    return [
        ProfitCurvePoint(date=point.date, profit=point.profit * factor, drawdown=point.drawdown * factor)
        for point in curve
    ]


def normalize_statistics(stats: CalculatedStatistics, scale_factor: float) -> CalculatedStatistics:
    """Rescale monetary fields only; counts, ratios and percentages are unit-free."""
    return replace(stats, **{name: _finite(getattr(stats, name) * scale_factor) for name in MONETARY_FIELDS})
