"""
Load backtest reports and the forward-test log from disk and reconcile them.

Every call recomputes from the source files; nothing is cached between calls,
so a refresh is always safe to repeat.
"""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Sequence

import yaml

from quantfolio.core.config import settings
from quantfolio.core.exceptions import ForwardLogParseError, StrategyNotFoundError
from quantfolio.core.logging import logger
from quantfolio.data.reconciliation import StrategyRecord, reconcile_strategy
from quantfolio.parsers.excel_report import MT5ReportParser
from quantfolio.parsers.forward_log import ForwardLogData, parse_forward_file
from quantfolio.parsers.types import ReportParseResult


def build_strategy_records(
    reports: Sequence[tuple[str, ReportParseResult]],
    forward: ForwardLogData | None = None,
    names: dict[str, str] | None = None,
    *,
    target_drawdown: float = settings.TARGET_DRAWDOWN,
    initial_balance: float = settings.INITIAL_BALANCE,
) -> list[StrategyRecord]:
    """
    Reconcile parsed reports with forward data.

    Reports without trades are dropped, as are later reports repeating a magic
    number already seen. The result is sorted by magic number.
    """
    names = names or {}
    records: dict[int, StrategyRecord] = {}

    for source_file, report in reports:
        magic_number = report.metadata.magic_number
        if not any(tx.is_trade for tx in report.transactions):
            logger.warning(
                "Excluding backtest without transactions",
                extra={"source_file": source_file, "magic_number": magic_number},
            )
            continue
        if magic_number in records:
            logger.warning(
                "Skipping duplicate magic number",
                extra={
                    "source_file": source_file,
                    "magic_number": magic_number,
                    "kept_file": records[magic_number].source_file,
                },
            )
            continue

        forward_transactions = forward.for_strategy(magic_number) if forward else []
        records[magic_number] = reconcile_strategy(
            report,
            forward_transactions,
            name=names.get(str(magic_number)),
            source_file=source_file,
            target_drawdown=target_drawdown,
            initial_balance=initial_balance,
        )

    return [records[magic] for magic in sorted(records)]


class StrategyLoader:
    """File-system source of strategy records."""

    def __init__(
        self,
        backtest_dir: str | Path | None = None,
        forward_dir: str | Path | None = None,
        names_file: str | Path | None = None,
        *,
        backtest_patterns: Sequence[str] | None = None,
        forward_pattern: str | None = None,
        max_workers: int | None = None,
        target_drawdown: float | None = None,
        initial_balance: float | None = None,
    ) -> None:
        self.backtest_dir = Path(backtest_dir or settings.BACKTEST_DIR)
        self.forward_dir = Path(forward_dir or settings.FORWARD_DIR)
        self.names_file = Path(names_file or settings.STRATEGY_NAMES_FILE)
        self.backtest_patterns = tuple(backtest_patterns or settings.BACKTEST_FILE_PATTERNS)
        self.forward_pattern = forward_pattern or settings.FORWARD_FILE_PATTERN
        self.max_workers = max(1, max_workers or settings.LOADER_MAX_WORKERS)
        self.target_drawdown = settings.TARGET_DRAWDOWN if target_drawdown is None else target_drawdown
        self.initial_balance = settings.INITIAL_BALANCE if initial_balance is None else initial_balance
        self.parser = MT5ReportParser(initial_balance=self.initial_balance)

    def backtest_files(self) -> list[Path]:
        if not self.backtest_dir.is_dir():
            logger.warning("Backtest directory not found", extra={"path": str(self.backtest_dir)})
            return []
        files = {path for pattern in self.backtest_patterns for path in self.backtest_dir.glob(pattern)}
        # Lock files left by spreadsheet editors
        return sorted(path for path in files if path.is_file() and not path.name.startswith("~$"))

    def forward_file(self) -> Path | None:
        if not self.forward_dir.is_dir():
            return None
        candidates = [path for path in self.forward_dir.glob(self.forward_pattern) if path.is_file()]
        if not candidates:
            return None
        return max(candidates, key=lambda path: (path.stat().st_mtime, path.name))

    def _parse_report(self, path: Path) -> tuple[str, ReportParseResult] | None:
        result = self.parser.parse_file(path)
        if not result.success:
            logger.warning(
                "Skipping unreadable backtest report",
                extra={"source_file": path.name, "error": result.message},
            )
            return None
        return path.name, result

    def load_backtests(self) -> list[tuple[str, ReportParseResult]]:
        """Parse every backtest report; files are independent so reads run concurrently."""
        files = self.backtest_files()
        if not files:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(files))) as pool:
            parsed = list(pool.map(self._parse_report, files))
        reports = [item for item in parsed if item is not None]
        logger.info("Backtest reports loaded", extra={"files": len(files), "parsed": len(reports)})
        return reports

    def load_forward_log(self) -> ForwardLogData | None:
        path = self.forward_file()
        if path is None:
            logger.info("No forward-test log found", extra={"path": str(self.forward_dir)})
            return None
        try:
            return parse_forward_file(path)
        except ForwardLogParseError as exc:
            logger.warning(
                "Forward-test log unreadable, continuing with backtests only",
                extra={"source_file": path.name, "error": exc.reason},
            )
            return None

    def load_strategy_names(self) -> dict[str, str]:
        """Read the magic number -> display name overrides (JSON or YAML)."""
        if not self.names_file.is_file():
            return {}
        try:
            with self.names_file.open("r", encoding="utf-8") as f:
                if self.names_file.suffix.lower() in (".yaml", ".yml"):
                    raw: Any = yaml.safe_load(f) or {}
                else:
                    raw = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.warning("Could not read strategy names", extra={"path": str(self.names_file), "error": str(exc)})
            return {}
        if not isinstance(raw, dict):
            logger.warning("Strategy names file is not a mapping", extra={"path": str(self.names_file)})
            return {}
        return {str(key): str(value) for key, value in raw.items()}

    def get_all_strategies(self) -> list[StrategyRecord]:
        reports = self.load_backtests()
        forward = self.load_forward_log()
        records = build_strategy_records(
            reports,
            forward,
            self.load_strategy_names(),
            target_drawdown=self.target_drawdown,
            initial_balance=self.initial_balance,
        )
        logger.info(
            "Strategies loaded",
            extra={
                "strategies": len(records),
                "with_forward_test": sum(1 for record in records if record.has_forward_test),
            },
        )
        return records

    def get_strategy(self, magic_number: int) -> StrategyRecord:
        for record in self.get_all_strategies():
            if record.magic_number == magic_number:
                return record
        raise StrategyNotFoundError(magic_number)


def get_all_strategies() -> list[StrategyRecord]:
    return StrategyLoader().get_all_strategies()
