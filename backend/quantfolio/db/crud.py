"""CRUD helpers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import asc, select
from sqlalchemy.orm import Session

from quantfolio.core.exceptions import StrategyNotFoundError
from quantfolio.core.logging import logger, sanitize_log_extra
from quantfolio.data.reconciliation import StrategyRecord
from quantfolio.db.models import StrategyORM


def _apply_record(row: StrategyORM, record: StrategyRecord) -> None:
    row.name = record.name
    row.symbol = record.symbol
    row.timeframe = record.timeframe
    row.total_profit = record.total_profit
    row.total_trades = record.total_trades
    row.win_rate = record.win_rate
    row.profit_factor = record.profit_factor
    row.max_drawdown = record.max_drawdown
    row.max_drawdown_percent = record.max_drawdown_percent
    row.sharpe_ratio = record.sharpe_ratio
    row.has_forward_test = record.has_forward_test
    row.forward_test_start = record.forward_test_start
    row.profit_curve = [point.to_dict() for point in record.profit_curve]
    row.statistics = record.statistics.to_dict()
    row.monthly_returns = dict(record.monthly_returns)
    row.source_file = record.source_file
    row.is_active = True


def save_strategy_snapshot(db: Session, record: StrategyRecord) -> StrategyORM:
    """Insert or refresh the snapshot of one strategy."""
    stmt = select(StrategyORM).where(StrategyORM.magic_number == record.magic_number)
    row = db.execute(stmt).scalars().first()
    inserted = row is None
    if inserted:
        row = StrategyORM(magic_number=record.magic_number)
    _apply_record(row, record)
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(
        "Strategy snapshot saved",
        extra=sanitize_log_extra({"magic_number": record.magic_number, "inserted": inserted}),
    )
    return row


def list_strategies(db: Session, *, include_inactive: bool = False) -> list[StrategyORM]:
    stmt = select(StrategyORM).order_by(asc(StrategyORM.magic_number))
    if not include_inactive:
        stmt = stmt.where(StrategyORM.is_active == True)  # noqa: E712
    return list(db.execute(stmt).scalars().all())


def get_strategy(db: Session, magic_number: int) -> StrategyORM:
    stmt = select(StrategyORM).where(StrategyORM.magic_number == magic_number)
    row = db.execute(stmt).scalars().first()
    if row is None:
        raise StrategyNotFoundError(magic_number)
    return row


def deactivate_strategy(db: Session, magic_number: int) -> StrategyORM:
    """Hide a strategy from listings without deleting its snapshot."""
    row = get_strategy(db, magic_number)
    row.is_active = False
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Strategy deactivated", extra=sanitize_log_extra({"magic_number": magic_number}))
    return row
