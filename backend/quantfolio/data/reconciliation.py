"""
Reconcile backtest and forward-test transactions into one strategy record.

Both sources are expressed in the backtest's risk unit: the factor that maps the
backtest max drawdown onto the target drawdown is applied to both halves, and a
final pass over the merged series pins its max drawdown to the target exactly.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Sequence

from quantfolio.analytics.statistics import (
    CalculatedStatistics,
    ProfitCurvePoint,
    build_profit_curve,
    calculate_drawdowns,
    calculate_statistics,
    drawdown_scale_factor,
    max_drawdown,
    monthly_profits,
    normalize_profit_curve,
    normalize_statistics,
)
from quantfolio.core.config import settings
from quantfolio.core.logging import logger
from quantfolio.parsers.types import ReportParseResult, Transaction


@dataclass
class StrategyRecord:
    magic_number: int
    name: str
    symbol: str
    timeframe: str
    total_profit: float
    max_drawdown: float
    sharpe_ratio: float
    win_rate: float
    profit_curve: list[ProfitCurvePoint]
    transactions: list[Transaction]
    has_forward_test: bool = False
    forward_test_start: datetime | None = None
    forward_test_end: datetime | None = None
    backtest_start: datetime | None = None
    backtest_end: datetime | None = None
    total_trades: int = 0
    profit_factor: float = 0.0
    max_drawdown_percent: float = 0.0
    statistics: CalculatedStatistics = field(default_factory=CalculatedStatistics.zero)
    monthly_returns: dict[str, float] = field(default_factory=dict)
    source_file: str | None = None

    @property
    def start_date(self) -> str | None:
        return self.profit_curve[0].date if self.profit_curve else None

    @property
    def end_date(self) -> str | None:
        return self.profit_curve[-1].date if self.profit_curve else None

    def to_dict(self, *, include_transactions: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "magic_number": self.magic_number,
            "name": self.name,
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "total_profit": self.total_profit,
            "total_trades": self.total_trades,
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "max_drawdown": self.max_drawdown,
            "max_drawdown_percent": self.max_drawdown_percent,
            "sharpe_ratio": self.sharpe_ratio,
            "has_forward_test": self.has_forward_test,
            "forward_test_start": self.forward_test_start.isoformat() if self.forward_test_start else None,
            "backtest_start": self.backtest_start.isoformat() if self.backtest_start else None,
            "backtest_end": self.backtest_end.isoformat() if self.backtest_end else None,
            "profit_curve": [point.to_dict() for point in self.profit_curve],
            "monthly_returns": self.monthly_returns,
            "statistics": self.statistics.to_dict(),
        }
        if include_transactions:
            payload["transactions"] = [tx.to_dict() for tx in self.transactions]
        return payload


def scale_transactions(transactions: Sequence[Transaction], factor: float) -> list[Transaction]:
    """Scale the monetary fields of each transaction. Balance, volume and prices keep source units."""
    if factor == 1.0:
        return list(transactions)
    return [
        replace(tx, profit=tx.profit * factor, commission=tx.commission * factor, swap=tx.swap * factor)
        for tx in transactions
    ]


def monthly_returns_percent(transactions: Sequence[Transaction], capital: float) -> dict[str, float]:
    if capital <= 0:
        return {}
    return {month: profit / capital * 100 for month, profit in monthly_profits(transactions).items()}


def reconcile_strategy(
    report: ReportParseResult,
    forward_transactions: Sequence[Transaction] = (),
    *,
    name: str | None = None,
    source_file: str | None = None,
    target_drawdown: float = settings.TARGET_DRAWDOWN,
    initial_balance: float = settings.INITIAL_BALANCE,
    capital_ratio: float = settings.DRAWDOWN_CAPITAL_RATIO,
) -> StrategyRecord:
    """Merge one backtest report with the forward trades sharing its magic number."""
    magic_number = report.metadata.magic_number
    backtest = sorted(report.transactions, key=lambda tx: tx.open_time)
    forward = sorted(forward_transactions, key=lambda tx: tx.open_time)

    backtest_stats = calculate_statistics(backtest, initial_balance)
    scale = drawdown_scale_factor(backtest_stats.max_drawdown, target_drawdown)

    merged = sorted(
        scale_transactions(backtest, scale) + scale_transactions(forward, scale),
        key=lambda tx: tx.open_time,
    )

    # The merge moves peaks and troughs, so pin the merged drawdown to the target once more.
    curve = calculate_drawdowns(build_profit_curve(merged))
    merged_drawdown = max_drawdown(curve)
    final_scale = drawdown_scale_factor(merged_drawdown, target_drawdown)
    curve = normalize_profit_curve(curve, merged_drawdown, target_drawdown)
    stats = normalize_statistics(calculate_statistics(merged, initial_balance), final_scale)
    merged = scale_transactions(merged, final_scale)

    logger.debug(
        "Strategy reconciled",
        extra={
            "magic_number": magic_number,
            "backtest_max_drawdown": backtest_stats.max_drawdown,
            "scale_factor": scale,
            "final_scale_factor": final_scale,
            "forward_trades": len(forward),
        },
    )

    trades = [tx for tx in backtest if tx.is_trade]
    capital = target_drawdown / capital_ratio if capital_ratio > 0 else target_drawdown
    return StrategyRecord(
        magic_number=magic_number,
        name=name or f"Strategy {magic_number}",
        symbol=report.summary.symbol or (trades[0].symbol if trades else ""),
        timeframe=report.summary.timeframe,
        total_profit=stats.total_net_profit,
        max_drawdown=stats.max_drawdown,
        sharpe_ratio=stats.sharpe_ratio,
        win_rate=stats.win_rate,
        profit_curve=curve,
        transactions=merged,
        has_forward_test=bool(forward),
        forward_test_start=forward[0].open_time if forward else None,
        forward_test_end=forward[-1].open_time if forward else None,
        backtest_start=trades[0].open_time if trades else None,
        backtest_end=trades[-1].open_time if trades else None,
        total_trades=stats.total_trades,
        profit_factor=stats.profit_factor,
        max_drawdown_percent=stats.max_drawdown_percent,
        statistics=stats,
        monthly_returns=monthly_returns_percent(merged, capital),
        source_file=source_file,
    )
