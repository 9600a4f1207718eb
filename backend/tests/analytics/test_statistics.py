"""Tests for transaction statistics and drawdown normalization."""
import math

import pytest

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
from quantfolio.parsers.types import TransactionKind


@pytest.fixture
def scenario(trade):
    return [
        trade("2024-01-02T10:00:00", 100.0, id=1),
        trade("2024-01-03T10:00:00", 50.0, id=2),
        trade("2024-02-01T10:00:00", -60.0, id=3),
    ]


def test_basic_statistics(scenario):
    stats = calculate_statistics(scenario, initial_balance=10000.0)

    assert stats.total_net_profit == 90.0
    assert stats.total_gross_profit == 150.0
    assert stats.total_gross_loss == 60.0
    assert stats.profit_factor == 2.5
    assert stats.expected_payoff == 30.0
    assert stats.total_trades == 3
    assert stats.profit_trades == 2
    assert stats.loss_trades == 1
    assert stats.win_rate == pytest.approx(66.6667, rel=1e-4)
    assert stats.largest_profit_trade == 100.0
    assert stats.largest_loss_trade == 60.0
    assert stats.average_profit_trade == 75.0
    assert stats.average_loss_trade == 60.0
    assert stats.max_consecutive_wins == 2
    assert stats.max_consecutive_losses == 1
    assert stats.max_consecutive_profit == 150.0
    assert stats.max_consecutive_loss == 60.0


def test_drawdown_and_sharpe(scenario):
    stats = calculate_statistics(scenario, initial_balance=10000.0)

    assert stats.max_drawdown == 60.0
    assert stats.max_drawdown_percent == pytest.approx(60.0 / 10150.0 * 100)
    # Monthly returns of 1.5% and -0.6%: mean 0.45, population std 1.05.
    assert stats.sharpe_ratio == pytest.approx(0.45 / 1.05 * math.sqrt(12))


def test_empty_input_yields_zeros():
    stats = calculate_statistics([])
    assert stats == CalculatedStatistics.zero()
    assert stats.total_trades == 0
    assert stats.profit_factor == 0.0


def test_balance_rows_are_ignored(trade, scenario):
    deposit = trade("2024-01-01T00:00:00", 10000.0, kind=TransactionKind.BALANCE)
    stats = calculate_statistics([deposit, *scenario])
    assert stats.total_net_profit == 90.0
    assert stats.total_trades == 3


def test_profit_factor_without_losses(trade):
    stats = calculate_statistics([trade("2024-01-02T10:00:00", 40.0), trade("2024-01-03T10:00:00", 60.0)])
    assert stats.profit_factor == 100.0
    assert stats.max_drawdown == 0.0
    assert stats.average_loss_trade == 0.0


def test_sharpe_needs_two_months(trade):
    stats = calculate_statistics([trade("2024-01-02T10:00:00", 40.0), trade("2024-01-20T10:00:00", -10.0)])
    assert stats.sharpe_ratio == 0.0


def test_zero_profit_trades_do_not_break_streaks(trade):
    trades = [
        trade("2024-01-01T10:00:00", 10.0),
        trade("2024-01-02T10:00:00", 0.0),
        trade("2024-01-03T10:00:00", 20.0),
    ]
    stats = calculate_statistics(trades)
    assert stats.max_consecutive_wins == 2
    assert stats.max_consecutive_profit == 30.0
    assert stats.total_trades == 3
    assert stats.win_rate == pytest.approx(66.6667, rel=1e-4)


def test_profit_curve_is_a_daily_close(trade):
    trades = [
        trade("2024-01-02T15:00:00", -20.0),
        trade("2024-01-02T09:00:00", 50.0),
        trade("2024-01-04T09:00:00", 10.0),
    ]
    curve = build_profit_curve(trades)

    assert [point.date for point in curve] == ["2024-01-02", "2024-01-04"]
    assert [point.profit for point in curve] == [30.0, 40.0]


def test_drawdowns_are_non_negative_and_zero_at_peaks():
    curve = calculate_drawdowns(
        [ProfitCurvePoint("2024-01-01", -50.0), ProfitCurvePoint("2024-01-02", 100.0), ProfitCurvePoint("2024-01-03", 40.0)]
    )
    assert [point.drawdown for point in curve] == [50.0, 0.0, 60.0]
    assert all(point.drawdown >= 0 for point in curve)
    assert max_drawdown(curve) == 60.0


def test_monthly_profits_sorted(trade, scenario):
    late = trade("2023-12-31T10:00:00", 5.0)
    assert monthly_profits([*scenario, late]) == {"2023-12": 5.0, "2024-01": 150.0, "2024-02": -60.0}


def test_normalized_curve_hits_target():
    curve = calculate_drawdowns([ProfitCurvePoint("2024-01-01", 400.0), ProfitCurvePoint("2024-01-02", 0.0)])
    normalized = normalize_profit_curve(curve, 400.0, target_drawdown=1000.0)

    assert max_drawdown(normalized) == pytest.approx(1000.0)
    assert normalized[0].profit == pytest.approx(1000.0)


def test_normalize_without_drawdown_is_identity():
    curve = [ProfitCurvePoint("2024-01-01", 10.0)]
    assert normalize_profit_curve(curve, 0.0) is curve
    assert normalize_profit_curve([], 250.0) == []
    assert drawdown_scale_factor(0.0, 1000.0) == 1.0
    assert drawdown_scale_factor(500.0, 1000.0) == 2.0


def test_normalize_statistics_scales_money_only(scenario):
    stats = calculate_statistics(scenario, initial_balance=10000.0)
    scaled = normalize_statistics(stats, 2.0)

    assert scaled.total_net_profit == 180.0
    assert scaled.max_drawdown == 120.0
    assert scaled.largest_loss_trade == 120.0
    assert scaled.win_rate == stats.win_rate
    assert scaled.profit_factor == stats.profit_factor
    assert scaled.max_drawdown_percent == stats.max_drawdown_percent
    assert scaled.total_trades == stats.total_trades
