"""Tests for portfolio aggregation and window metrics."""
from datetime import date, datetime

import pytest

from quantfolio.core.exceptions import InvalidDateRangeError
from quantfolio.portfolio.aggregator import aggregate_portfolio, combine_profit_curves
from quantfolio.portfolio.weights import WeightMethod


def test_combined_curve_carries_values_forward(record_factory):
    first = record_factory(1, [("2024-01-01", 10.0), ("2024-01-03", 30.0)])
    second = record_factory(2, [("2024-01-02", 5.0)])

    curve = combine_profit_curves([first, second])

    assert [point.date for point in curve] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert [point.profit for point in curve] == [10.0, 15.0, 35.0]
    assert all(point.drawdown == 0.0 for point in curve)


def test_empty_selection():
    result = aggregate_portfolio([])
    assert result.curve == []
    assert result.window_curve == []
    assert result.stats.strategy_count == 0
    assert result.forward_test_start_date is None


def test_window_metrics(record_factory):
    record = record_factory(1, [("2024-01-01", 100.0), ("2024-01-02", 50.0), ("2024-01-03", 200.0)])

    result = aggregate_portfolio([record], capital_ratio=0.2)
    stats = result.stats

    # Overall max drawdown of 50 at a 20% ratio implies 250 of capital.
    assert stats.real_initial_capital == pytest.approx(250.0)
    assert stats.total_profit == pytest.approx(100.0)
    assert stats.total_profit_percent == pytest.approx(100.0 / 350.0 * 100)
    assert stats.max_drawdown == pytest.approx(50.0)
    assert stats.max_drawdown_percent == pytest.approx(50.0 / 350.0 * 100)
    assert stats.sharpe_ratio > 0
    assert stats.annualized_return_percent > stats.total_profit_percent
    assert stats.calmar_ratio == pytest.approx(stats.annualized_return_percent / stats.max_drawdown_percent)
    assert stats.start_date == "2024-01-01"
    assert stats.end_date == "2024-01-03"


def test_window_drawdown_peak_resets(record_factory):
    record = record_factory(1, [("2024-01-01", 100.0), ("2024-01-02", 50.0), ("2024-01-03", 200.0)])

    result = aggregate_portfolio([record], "2024-01-02", "2024-01-03")

    assert result.curve[1].drawdown == 50.0
    assert [point.date for point in result.window_curve] == ["2024-01-02", "2024-01-03"]
    assert result.window_curve[0].drawdown == 0.0
    assert result.stats.max_drawdown == 0.0
    assert result.stats.calmar_ratio == 0.0
    assert result.stats.total_profit == pytest.approx(150.0)


def test_capital_falls_back_to_target_per_strategy(record_factory):
    records = [record_factory(1, [("2024-01-01", 10.0)]), record_factory(2, [("2024-01-02", 20.0)])]
    result = aggregate_portfolio(records, target_drawdown=1000.0)
    assert result.stats.real_initial_capital == 2000.0


def test_single_point_window(record_factory):
    record = record_factory(1, [("2024-01-01", 100.0), ("2024-01-02", 50.0)])
    result = aggregate_portfolio([record], date(2024, 1, 2), datetime(2024, 1, 2, 23, 0))

    assert len(result.window_curve) == 1
    assert result.stats.total_profit_percent == 0.0
    assert result.stats.annualized_return_percent == 0.0
    assert result.stats.sharpe_ratio == 0.0
    assert result.stats.calmar_ratio == 0.0


def test_empty_window_keeps_capital(record_factory):
    record = record_factory(1, [("2024-01-01", 100.0), ("2024-01-02", 50.0)])
    result = aggregate_portfolio([record], "2025-01-01", "2025-12-31")

    assert result.window_curve == []
    assert len(result.curve) == 2
    assert result.stats.real_initial_capital == pytest.approx(250.0)
    assert result.stats.total_profit == 0.0
    assert result.stats.start_date is None


def test_inverted_range_is_rejected(record_factory):
    record = record_factory(1, [("2024-01-01", 100.0)])
    with pytest.raises(InvalidDateRangeError):
        aggregate_portfolio([record], "2024-02-01", "2024-01-01")
    with pytest.raises(InvalidDateRangeError):
        aggregate_portfolio([record], "not a date")


def test_forward_test_start_is_earliest(record_factory):
    records = [
        record_factory(1, [("2024-01-01", 10.0)], forward_test_start=datetime(2024, 6, 2, 9, 0)),
        record_factory(2, [("2024-01-01", 10.0)], forward_test_start=datetime(2024, 5, 20, 15, 0)),
        record_factory(3, [("2024-01-01", 10.0)]),
    ]
    assert aggregate_portfolio(records).forward_test_start_date == "2024-05-20"


def test_weighted_aggregation(record_factory):
    low_risk = record_factory(1, [("2024-01-01", 30.0)], max_drawdown=1000.0)
    high_risk = record_factory(2, [("2024-01-01", 30.0)], max_drawdown=2000.0)

    equal = aggregate_portfolio([low_risk, high_risk], weight_method=WeightMethod.EQUAL)
    inverse = aggregate_portfolio([low_risk, high_risk], weight_method="INVERSE_DD")

    assert equal.curve[0].profit == pytest.approx(60.0)
    assert inverse.curve[0].profit == pytest.approx(30.0 * 4 / 3 + 30.0 * 2 / 3)
    assert combine_profit_curves([low_risk, high_risk], {1: 2.0})[0].profit == pytest.approx(60.0)
