"""Typed records produced by the report and forward-log parsers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class TransactionKind(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    BALANCE = "BALANCE"
    CREDIT = "CREDIT"


class Provenance(str, Enum):
    BACKTEST = "backtest"
    FORWARD_TEST = "forward_test"


TRADE_KINDS = frozenset({TransactionKind.BUY, TransactionKind.SELL})


@dataclass(slots=True)
class Transaction:
    """One closed trade or account event."""

    id: int
    kind: TransactionKind
    open_time: datetime
    symbol: str
    volume: float
    open_price: float
    profit: float
    close_time: datetime | None = None
    close_price: float | None = None
    commission: float = 0.0
    swap: float = 0.0
    balance: float | None = None
    comment: str | None = None
    sl: float | None = None
    tp: float | None = None
    provenance: Provenance = Provenance.BACKTEST

    @property
    def is_trade(self) -> bool:
        return self.kind in TRADE_KINDS

    @property
    def closed_at(self) -> datetime:
        return self.close_time or self.open_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "open_time": self.open_time.isoformat(),
            "close_time": self.closed_at.isoformat(),
            "symbol": self.symbol,
            "volume": self.volume,
            "open_price": self.open_price,
            "close_price": self.close_price,
            "commission": self.commission,
            "swap": self.swap,
            "profit": self.profit,
            "balance": self.balance,
            "comment": self.comment,
            "provenance": self.provenance.value,
        }


@dataclass(slots=True)
class ReportMetadata:
    magic_number: int = 0
    custom_comment: str | None = None
    currency: str = "USD"
    broker: str | None = None
    account_number: str | None = None
    leverage: int | None = None


@dataclass(slots=True)
class ReportSummary:
    """Summary block as reported by the strategy tester; display only."""

    symbol: str = ""
    period: str = ""
    model_type: str = ""
    initial_deposit: float = 0.0

    total_net_profit: float = 0.0
    total_gross_profit: float = 0.0
    total_gross_loss: float = 0.0
    profit_factor: float = 0.0
    expected_payoff: float = 0.0
    recovery_factor: float = 0.0
    sharpe_ratio: float = 0.0

    absolute_drawdown: float = 0.0
    maximal_drawdown: float = 0.0
    maximal_drawdown_percent: float = 0.0
    relative_drawdown: float = 0.0
    relative_drawdown_percent: float = 0.0

    total_trades: int = 0
    short_positions: int = 0
    long_positions: int = 0
    profit_trades: int = 0
    loss_trades: int = 0
    win_rate: float = 0.0

    largest_profit_trade: float = 0.0
    largest_loss_trade: float = 0.0
    average_profit_trade: float = 0.0
    average_loss_trade: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    max_consecutive_profit: float = 0.0
    max_consecutive_loss: float = 0.0
    average_consecutive_wins: float = 0.0
    average_consecutive_losses: float = 0.0

    @property
    def timeframe(self) -> str:
        """Leading token of the period label, e.g. "H1" from "H1 (2020.01.01 - 2024.12.31)"."""
        parts = self.period.split()
        return parts[0] if parts else ""


@dataclass(slots=True)
class ReportParseResult:
    metadata: ReportMetadata
    summary: ReportSummary
    transactions: list[Transaction]
    monthly_profits: dict[str, float] = field(default_factory=dict)
    monthly_returns: dict[str, float] = field(default_factory=dict)
    equity_trace: list[tuple[datetime, float]] = field(default_factory=list)
    success: bool = field(default=True, init=False)


@dataclass(slots=True)
class ParseFailure:
    message: str
    field_name: str | None = None
    value: Any = None
    success: bool = field(default=False, init=False)


ParseResult = Union[ReportParseResult, ParseFailure]
