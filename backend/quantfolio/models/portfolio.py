"""Pydantic models for strategy and portfolio API responses."""
from typing import Optional

from pydantic import BaseModel, Field

from quantfolio.analytics.statistics import ProfitCurvePoint
from quantfolio.data.reconciliation import StrategyRecord
from quantfolio.portfolio.aggregator import PortfolioResult


class CurvePoint(BaseModel):
    """Daily sample of a profit curve."""

    date: str = Field(..., description="Calendar day (YYYY-MM-DD)")
    profit: float = Field(..., description="Cumulative profit since inception")
    drawdown: float = Field(0.0, description="Gap to the running peak, non-negative")

    @classmethod
    def from_point(cls, point: ProfitCurvePoint) -> "CurvePoint":
        return cls(date=point.date, profit=point.profit, drawdown=point.drawdown)


class StrategyStatistics(BaseModel):
    """Normalized statistics of the merged backtest and forward-test series."""

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


class StrategySummary(BaseModel):
    """Strategy row of the dashboard table."""

    magic_number: int = Field(..., description="Strategy identifier")
    name: str = Field(..., description="Display name")
    symbol: str = Field("", description="Traded instrument")
    timeframe: str = Field("", description="Chart timeframe of the backtest")
    total_profit: float = Field(..., description="Normalized net profit")
    total_trades: int = Field(0, description="Number of closed trades")
    win_rate: float = Field(0.0, description="Win rate (%)")
    profit_factor: float = Field(0.0, description="Gross profit over gross loss")
    max_drawdown: float = Field(0.0, description="Normalized max drawdown")
    max_drawdown_percent: float = Field(0.0, description="Max drawdown relative to peak equity (%)")
    sharpe_ratio: float = Field(0.0, description="Annualized Sharpe from monthly returns")
    has_forward_test: bool = Field(False, description="Whether live trades were merged in")
    forward_test_start: Optional[str] = Field(None, description="First forward-test trade (ISO format)")
    start_date: Optional[str] = Field(None, description="First curve date")
    end_date: Optional[str] = Field(None, description="Last curve date")

    @classmethod
    def from_record(cls, record: StrategyRecord) -> "StrategySummary":
        return cls(
            magic_number=record.magic_number,
            name=record.name,
            symbol=record.symbol,
            timeframe=record.timeframe,
            total_profit=record.total_profit,
            total_trades=record.total_trades,
            win_rate=record.win_rate,
            profit_factor=record.profit_factor,
            max_drawdown=record.max_drawdown,
            max_drawdown_percent=record.max_drawdown_percent,
            sharpe_ratio=record.sharpe_ratio,
            has_forward_test=record.has_forward_test,
            forward_test_start=record.forward_test_start.isoformat() if record.forward_test_start else None,
            start_date=record.start_date,
            end_date=record.end_date,
        )


class StrategyDetail(StrategySummary):
    """Single strategy with its curve and monthly returns."""

    profit_curve: list[CurvePoint] = Field(default_factory=list)
    monthly_returns: dict[str, float] = Field(default_factory=dict, description="YYYY-MM -> return (%)")
    statistics: StrategyStatistics

    @classmethod
    def from_record(cls, record: StrategyRecord) -> "StrategyDetail":
        summary = StrategySummary.from_record(record)
        return cls(
            **summary.model_dump(),
            profit_curve=[CurvePoint.from_point(point) for point in record.profit_curve],
            monthly_returns=record.monthly_returns,
            statistics=StrategyStatistics(**record.statistics.to_dict()),
        )


class StrategyListResponse(BaseModel):
    strategies: list[StrategySummary]
    count: int


class PortfolioStatsModel(BaseModel):
    """Risk metrics of the selected window."""

    strategy_count: int
    total_profit: float
    total_profit_percent: float = Field(..., description="Window return on the implied capital (%)")
    annualized_return_percent: float = Field(..., description="CAGR over the window (%)")
    max_drawdown: float
    max_drawdown_percent: float = Field(..., description="Max drawdown within the window (%)")
    sharpe_ratio: float = Field(..., description="Annualized from daily returns")
    calmar_ratio: float
    real_initial_capital: float = Field(..., description="Capital implied by the drawdown-to-capital ratio")
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class PortfolioResponse(BaseModel):
    magic_numbers: list[int]
    curve: list[CurvePoint]
    window_curve: list[CurvePoint]
    stats: PortfolioStatsModel
    forward_test_start_date: Optional[str] = None

    @classmethod
    def from_result(cls, magic_numbers: list[int], result: PortfolioResult) -> "PortfolioResponse":
        return cls(
            magic_numbers=magic_numbers,
            curve=[CurvePoint.from_point(point) for point in result.curve],
            window_curve=[CurvePoint.from_point(point) for point in result.window_curve],
            stats=PortfolioStatsModel(**result.stats.to_dict()),
            forward_test_start_date=result.forward_test_start_date,
        )
