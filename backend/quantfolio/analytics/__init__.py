"""Analytics utilities."""

from .statistics import (  # noqa: F401
    CalculatedStatistics,
    ProfitCurvePoint,
    build_profit_curve,
    calculate_drawdowns,
    calculate_statistics,
    normalize_profit_curve,
    normalize_statistics,
)
