"""Shared test fixtures."""
from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import pytest

# Keep test runs quiet and away from the real snapshot database.
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from quantfolio.analytics.statistics import ProfitCurvePoint  # noqa: E402
from quantfolio.data.reconciliation import StrategyRecord  # noqa: E402
from quantfolio.parsers.types import Provenance, Transaction, TransactionKind  # noqa: E402

WIDTH = 13

# (open time, close time, side, volume, open price, close price, profit, balance)
DEFAULT_DEALS = [
    ("2024.01.02 10:00:00", "2024.01.02 15:00:00", "buy", 0.10, 2050.00, 2060.00, 100.00, 10100.00),
    ("2024.01.15 10:00:00", "2024.01.15 18:00:00", "buy", 0.10, 2040.00, 2034.00, -60.00, 10040.00),
    ("2024.02.05 09:00:00", "2024.02.06 11:00:00", "sell", 0.10, 2030.00, 2025.00, 50.00, 10090.00),
]


def _row(*cells: Any) -> list[Any]:
    row = list(cells) + [""] * (WIDTH - len(cells))
    return row[:WIDTH]


def build_report_grid(
    magic_number: int = 202501021,
    deals: list[tuple] | None = None,
    *,
    symbol: str = "XAUUSD",
    period: str = "H1 (2024.01.01 - 2024.03.31)",
    include_magic_input: bool = True,
) -> list[list[Any]]:
    """English strategy tester report with an Orders section and an in/out Deals table."""
    deals = DEFAULT_DEALS if deals is None else deals
    grid = [
        _row("Strategy Tester Report"),
        _row("Expert:", "", "", f"SQX_{magic_number}"),
        _row("Symbol:", "", "", symbol),
        _row("Period:", "", "", period),
        _row("Company:", "", "", "Test Broker Ltd"),
        _row("Currency:", "", "", "USD"),
        _row("Initial Deposit:", "", "", "10 000.00"),
        _row("Leverage:", "", "", "1:100"),
        _row("Inputs:", "", "", f"MagicNumber={magic_number}" if include_magic_input else "LotSize=0.1"),
        _row("", "", "", "LotSize=0.1"),
        _row(),
        _row("Results"),
        _row("Total Net Profit:", "", "", "90.00", "Gross Profit:", "", "", "150.00", "Gross Loss:", "", "", "-60.00"),
        _row("Profit Factor:", "", "", "2.50", "Expected Payoff:", "", "", "30.00", "Recovery Factor:", "", "", "1.50"),
        _row(
            "Balance Drawdown Absolute:", "", "", "0.00",
            "Balance Drawdown Maximal:", "", "", "60.00 (0.60%)",
            "Balance Drawdown Relative:", "", "", "0.60% (60.00)",
        ),
        _row("Total Trades:", "", "", "3", "Short Trades (won %):", "", "", "1 (100.00%)", "Long Trades (won %):", "", "", "2 (50.00%)"),
        _row("", "", "", "", "Profit Trades (% of total):", "", "", "2 (66.67%)", "Loss Trades (% of total):", "", "", "1 (33.33%)"),
        _row("", "", "", "", "Largest profit trade:", "", "", "100.00", "Largest loss trade:", "", "", "-60.00"),
        _row("", "", "", "", "Average profit trade:", "", "", "75.00", "Average loss trade:", "", "", "-60.00"),
        _row(
            "", "", "", "",
            "Maximum consecutive wins ($):", "", "", "2 (150.00)",
            "Maximum consecutive losses ($):", "", "", "1 (-60.00)",
        ),
        _row(),
        _row("Orders"),
        _row("Open Time", "Order", "Symbol", "Type", "Volume", "Price", "S / L", "T / P", "Time", "State", "Comment"),
        _row("2024.01.02 10:00:00", "2", symbol, "buy", "0.10 / 0.10", "2050.00", "", "", "2024.01.02 10:00:00", "filled"),
        _row(),
        _row("Deals"),
        _row("Time", "Deal", "Symbol", "Type", "Direction", "Volume", "Price", "Order", "Commission", "Swap", "Profit", "Balance", "Comment"),
        _row("2024.01.01 00:00:00", "1", "", "balance", "", "", "", "", "0.00", "0.00", "10000.00", "10000.00"),
    ]
    ticket = 2
    for open_time, close_time, side, volume, open_price, close_price, profit, balance in deals:
        exit_side = "sell" if side == "buy" else "buy"
        grid.append(_row(open_time, str(ticket), symbol, side, "in", volume, open_price, str(ticket), "-0.50", "0.00", "0.00", ""))
        grid.append(
            _row(close_time, str(ticket + 1), symbol, exit_side, "out", volume, close_price, str(ticket + 1), "-0.50", "0.00", profit, balance, "tp")
        )
        ticket += 2
    grid.append(_row("", "", "", "", "", "", "", "", "-3.00", "0.00", "90.00", "10090.00"))
    return grid


def write_workbook(path: Path, grid: list[list[Any]]) -> Path:
    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    for row in grid:
        sheet.append([None if cell == "" else cell for cell in row])
    workbook.save(path)
    return path


def make_trade(
    when: str | datetime,
    profit: float,
    *,
    kind: TransactionKind = TransactionKind.BUY,
    symbol: str = "XAUUSD",
    volume: float = 0.1,
    provenance: Provenance = Provenance.BACKTEST,
    id: int = 0,
) -> Transaction:
    open_time = datetime.fromisoformat(when) if isinstance(when, str) else when
    return Transaction(
        id=id,
        kind=kind,
        open_time=open_time,
        close_time=open_time,
        symbol=symbol,
        volume=volume,
        open_price=100.0,
        profit=profit,
        provenance=provenance,
    )


def make_record(
    magic_number: int,
    points: list[tuple[str, float]],
    *,
    max_drawdown: float = 1000.0,
    sharpe_ratio: float = 1.0,
    forward_test_start: datetime | None = None,
) -> StrategyRecord:
    curve = [ProfitCurvePoint(date=day, profit=profit) for day, profit in points]
    return StrategyRecord(
        magic_number=magic_number,
        name=f"Strategy {magic_number}",
        symbol="XAUUSD",
        timeframe="H1",
        total_profit=points[-1][1] if points else 0.0,
        max_drawdown=max_drawdown,
        sharpe_ratio=sharpe_ratio,
        win_rate=50.0,
        profit_curve=curve,
        transactions=[],
        has_forward_test=forward_test_start is not None,
        forward_test_start=forward_test_start,
    )


@pytest.fixture
def report_grid() -> Callable[..., list[list[Any]]]:
    return build_report_grid


@pytest.fixture
def workbook_writer() -> Callable[[Path, list[list[Any]]], Path]:
    return write_workbook


@pytest.fixture
def trade() -> Callable[..., Transaction]:
    return make_trade


@pytest.fixture
def record_factory() -> Callable[..., StrategyRecord]:
    return make_record


FORWARD_CSV = """sep=,
Ticket,Magic Number,Open Date,Open Time,Type,Symbol,Volume,Open Price,Close Price,Profit,Swap,Commission,Comment
1001,12345,2025/08/01,10:30:00,Buy,XAUUSD,0.20,3350.10,3355.20,102.00,0.00,-1.00,sqx
1002,0,2025/08/01,11:00:00,Sell,XAUUSD,0.20,3356.00,3350.00,120.00,0.00,-1.00,unattributed
1003,12345,2025/07/30,09:00:00,Sell,XAUUSD,0.10,3340.00,3330.00,"1,250.50",-2.00,-0.50,
1004,67890,08/02/2025,14:00,Buy,EURUSD,1.00,1.1650,1.1630,-200.00,0.00,-7.00,sqx
1005,12345,2025/08/03
1006,12345,not-a-date,12:00:00,Buy,XAUUSD,0.20,3350.10,3355.20,50.00,0.00,-1.00,bad
"""


@pytest.fixture
def forward_csv() -> str:
    return FORWARD_CSV
