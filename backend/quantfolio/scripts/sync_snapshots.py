"""Store the current strategy records in the snapshot database."""
from __future__ import annotations

import argparse
from pathlib import Path

from quantfolio.core.config import settings
from quantfolio.core.database import Base, SessionLocal, engine
from quantfolio.core.logging import logger
from quantfolio.data.loader import StrategyLoader
from quantfolio.db.crud import deactivate_strategy, list_strategies, save_strategy_snapshot


def sync_snapshots(loader: StrategyLoader, db) -> dict[str, int]:
    """Save every loaded strategy and deactivate snapshots whose report disappeared."""
    records = loader.get_all_strategies()
    for record in records:
        save_strategy_snapshot(db, record)

    current = {record.magic_number for record in records}
    stale = [row.magic_number for row in list_strategies(db) if row.magic_number not in current]
    for magic_number in stale:
        deactivate_strategy(db, magic_number)

    summary = {"saved": len(records), "deactivated": len(stale)}
    logger.info("Strategy snapshots synced", extra=summary)
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync strategy snapshots into the database")
    parser.add_argument("--backtest-dir", default=None, help="Backtest report directory")
    parser.add_argument("--forward-dir", default=None, help="Forward-test log directory")
    args = parser.parse_args()

    Path(settings.DATA_DIR).mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
    loader = StrategyLoader(backtest_dir=args.backtest_dir, forward_dir=args.forward_dir)
    with SessionLocal() as db:
        sync_snapshots(loader, db)


if __name__ == "__main__":
    main()
