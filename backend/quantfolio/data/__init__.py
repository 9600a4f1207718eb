"""Data layer: strategy loading and backtest/forward reconciliation."""
from .loader import StrategyLoader, build_strategy_records, get_all_strategies
from .reconciliation import StrategyRecord, reconcile_strategy
