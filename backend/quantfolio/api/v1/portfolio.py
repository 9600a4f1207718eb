"""Portfolio endpoints."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from quantfolio.core.exceptions import InvalidDateRangeError, StrategyNotFoundError
from quantfolio.core.logging import logger
from quantfolio.data.loader import StrategyLoader
from quantfolio.data.reconciliation import StrategyRecord
from quantfolio.models.portfolio import PortfolioResponse
from quantfolio.portfolio.aggregator import aggregate_portfolio
from quantfolio.portfolio.periods import PERIODS, resolve_period
from quantfolio.portfolio.weights import WeightMethod

router = APIRouter()
strategy_loader = StrategyLoader()


def select_strategies(records: list[StrategyRecord], magic_numbers: Optional[list[int]]) -> list[StrategyRecord]:
    """Pick the requested strategies; no selection means all of them."""
    if not magic_numbers:
        return records
    by_magic = {record.magic_number: record for record in records}
    selected = []
    for magic in dict.fromkeys(magic_numbers):
        if magic not in by_magic:
            raise StrategyNotFoundError(magic)
        selected.append(by_magic[magic])
    return selected


def _date_bounds(records: list[StrategyRecord]) -> Optional[tuple[date, date]]:
    dates = [point.date for record in records for point in record.profit_curve]
    if not dates:
        return None
    return date.fromisoformat(min(dates)), date.fromisoformat(max(dates))


@router.get("", response_model=PortfolioResponse)
def get_portfolio(
    magic: Optional[list[int]] = Query(None, description="Magic numbers to include; all when omitted"),
    start: Optional[str] = Query(None, description="Window start (YYYY-MM-DD)"),
    end: Optional[str] = Query(None, description="Window end (YYYY-MM-DD)"),
    period: Optional[str] = Query(None, description="Quick select: 1M, 3M, 6M, 12M, 36M, 60M, YTD, MAX"),
    weighting: Optional[WeightMethod] = Query(None, description="Optional weighting of strategies"),
):
    """
    Combined profit curve and window risk metrics for a set of strategies.

    A quick-select period overrides explicit start/end dates.
    """
    if period and period.strip().upper() not in PERIODS:
        raise HTTPException(status_code=422, detail=f"Unknown period {period!r}")

    try:
        selected = select_strategies(strategy_loader.get_all_strategies(), magic)
    except StrategyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    if period:
        bounds = _date_bounds(selected)
        if bounds is not None:
            try:
                start_date, end_date = resolve_period(period, *bounds)
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            start, end = start_date.isoformat(), end_date.isoformat()

    try:
        result = aggregate_portfolio(selected, start, end, weight_method=weighting)
    except InvalidDateRangeError as exc:
        logger.info("Rejected portfolio date range", extra={"start": start, "end": end, "reason": exc.reason})
        raise HTTPException(status_code=422, detail=exc.reason) from exc

    return PortfolioResponse.from_result([record.magic_number for record in selected], result)
