"""Strategy endpoints."""
from fastapi import APIRouter, HTTPException

from quantfolio.core.exceptions import StrategyNotFoundError
from quantfolio.core.logging import logger
from quantfolio.data.loader import StrategyLoader
from quantfolio.models.portfolio import StrategyDetail, StrategyListResponse, StrategySummary

router = APIRouter()
strategy_loader = StrategyLoader()


@router.get("", response_model=StrategyListResponse)
def list_strategies():
    """
    List every strategy found in the backtest directory.

    Reports are re-read on each call, so new or replaced files show up on the
    next request.
    """
    records = strategy_loader.get_all_strategies()
    return StrategyListResponse(
        strategies=[StrategySummary.from_record(record) for record in records],
        count=len(records),
    )


@router.get("/{magic_number}", response_model=StrategyDetail)
def get_strategy(magic_number: int):
    """Get one strategy with its normalized profit curve and statistics."""
    try:
        record = strategy_loader.get_strategy(magic_number)
    except StrategyNotFoundError as exc:
        logger.info("Strategy not found", extra={"magic_number": magic_number})
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return StrategyDetail.from_record(record)
