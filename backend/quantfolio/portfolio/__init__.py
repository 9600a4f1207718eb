"""Portfolio aggregation, weighting and date-range helpers."""

from .aggregator import PortfolioResult, PortfolioStats, aggregate_portfolio, combine_profit_curves  # noqa: F401
from .periods import resolve_period  # noqa: F401
from .weights import WeightMethod, calculate_weights  # noqa: F401
