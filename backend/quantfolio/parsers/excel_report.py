"""
Strategy tester report parser.

Parses backtest reports exported from the strategy tester to a spreadsheet.
The sheet is handled as a plain row-major grid of cells; labels and values are
located by content through the tables in ``label_rules`` rather than by fixed
coordinates, because their columns differ between report languages.
"""
from __future__ import annotations

from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from quantfolio.core.config import settings
from quantfolio.core.exceptions import ReportParseError
from quantfolio.core.logging import logger, sanitize_log_extra
from quantfolio.parsers import label_rules as rules
from quantfolio.parsers.cells import (
    cell_text,
    is_blank,
    is_valid_timestamp,
    month_key,
    normalize_label,
    parse_cell_date,
    parse_drawdown,
    parse_int,
    parse_number,
)
from quantfolio.parsers.types import (
    ParseFailure,
    ParseResult,
    ReportMetadata,
    ReportParseResult,
    ReportSummary,
    Transaction,
    TransactionKind,
)

Grid = Sequence[Sequence[Any]]


def _cell(row: Sequence[Any], index: int) -> Any:
    if index < 0 or index >= len(row):
        return None
    return row[index]


def _row_is_blank(row: Sequence[Any]) -> bool:
    return all(is_blank(value) for value in row)


def _standalone_label(row: Sequence[Any]) -> str | None:
    """Return the normalized text of a row holding exactly one non-blank cell."""
    filled = [value for value in row if not is_blank(value)]
    if len(filled) != 1:
        return None
    return normalize_label(filled[0])


def read_grid(source: str | Path, *, sheet: int | str = 0) -> list[list[Any]]:
    """Read the first sheet of a workbook into a list of rows with blank cells as ""."""
    try:
        frame = pd.read_excel(source, sheet_name=sheet, header=None, engine="openpyxl")
    except FileNotFoundError as exc:
        raise ReportParseError("Report file not found", source_file=str(source)) from exc
    except Exception as exc:
        raise ReportParseError(f"Unable to read workbook: {exc}", source_file=str(source)) from exc
    frame = frame.astype(object).where(pd.notna(frame), "")
    return frame.values.tolist()


class MT5ReportParser:
    """Parse strategy tester reports into metadata, summary and transactions."""

    def __init__(self, *, equity_seed: float | None = None, initial_balance: float | None = None) -> None:
        self.equity_seed = settings.EQUITY_SEED if equity_seed is None else equity_seed
        self.initial_balance = settings.INITIAL_BALANCE if initial_balance is None else initial_balance

    def parse_file(self, path: str | Path) -> ParseResult:
        path = Path(path)
        try:
            grid = read_grid(path)
        except ReportParseError as exc:
            logger.warning("Report file could not be read", extra=sanitize_log_extra({"path": str(path), "error": exc.reason}))
            return ParseFailure(message=exc.reason, field_name="file", value=str(path))
        return self.parse_grid(grid, source=path.name)

    def parse_grid(self, grid: Grid, *, source: str = "<grid>") -> ParseResult:
        """Parse an already loaded grid. Never raises; failures come back as ParseFailure."""
        try:
            rows = self._validate_grid(grid)
            metadata = self.parse_metadata(rows)
            summary = self.parse_summary(rows)
            transactions = self.parse_transactions(rows)
            monthly_profits, monthly_returns, equity_trace = self.calculate_derived_metrics(transactions)
        except ReportParseError as exc:
            logger.warning("Report grid rejected", extra=sanitize_log_extra({"source_file": source, "error": exc.reason}))
            return ParseFailure(message=exc.reason, field_name="grid")
        except Exception as exc:
            logger.exception("Unexpected error while parsing report", extra=sanitize_log_extra({"source_file": source}))
            return ParseFailure(message=f"Unexpected parsing error: {exc}")

        if not transactions:
            logger.info("Report contains no transaction table", extra=sanitize_log_extra({"source_file": source}))
        logger.debug(
            "Report parsed",
            extra=sanitize_log_extra(
                {"source_file": source, "magic_number": metadata.magic_number, "transactions": len(transactions)}
            ),
        )
        return ReportParseResult(
            metadata=metadata,
            summary=summary,
            transactions=transactions,
            monthly_profits=monthly_profits,
            monthly_returns=monthly_returns,
            equity_trace=equity_trace,
        )

    @staticmethod
    def _validate_grid(grid: Grid) -> list[Sequence[Any]]:
        if grid is None or isinstance(grid, (str, bytes)):
            raise ReportParseError("Report grid must be a sequence of rows")
        rows: list[Sequence[Any]] = []
        for index, row in enumerate(grid):
            if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
                raise ReportParseError(f"Row {index} is not a sequence of cells", context_data={"row": index})
            rows.append(row)
        return rows

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    def parse_metadata(self, rows: list[Sequence[Any]]) -> ReportMetadata:
        metadata = ReportMetadata()
        magic_candidates: dict[int, int] = {}  # priority -> magic number
        in_parameters = False

        for row in rows[: rules.METADATA_SCAN_ROWS]:
            label = normalize_label(_cell(row, 0))
            if label:
                # Input rows continue below the "Inputs" label with a blank first cell.
                in_parameters = any(token in label for token in rules.PARAMETER_LABEL_TOKENS)

            assignment = self._magic_from_assignment(row)
            if assignment is not None:
                magic_candidates.setdefault(0 if in_parameters else 1, assignment)

            if any(token in label for token in rules.MAGIC_LABEL_TOKENS):
                value = self._magic_from_value_columns(row)
                if value is not None:
                    magic_candidates.setdefault(2, value)
                continue
            if any(token in label for token in rules.EXPERT_LABEL_TOKENS):
                value = self._magic_from_value_columns(row)
                if value is not None:
                    magic_candidates.setdefault(3, value)
                continue

            for rule in rules.METADATA_RULES:
                if rule.matches(label):
                    self._apply_metadata_rule(metadata, rule.field, self._first_text(row, rules.METADATA_VALUE_COLUMNS))
                    break

        if magic_candidates:
            metadata.magic_number = magic_candidates[min(magic_candidates)]
        return metadata

    @staticmethod
    def _magic_from_assignment(row: Sequence[Any]) -> int | None:
        for value in row:
            match = rules.MAGIC_ASSIGNMENT_RE.search(cell_text(value))
            if match:
                return int(match.group(1))
        return None

    @staticmethod
    def _magic_from_value_columns(row: Sequence[Any]) -> int | None:
        for column in rules.METADATA_VALUE_COLUMNS:
            text = cell_text(_cell(row, column))
            digits = "".join(ch if ch.isdigit() else " " for ch in text).split()
            if digits:
                # The longest digit run is the identifier; short runs are version numbers.
                return int(max(digits, key=len))
        return None

    @staticmethod
    def _first_text(row: Sequence[Any], columns: Sequence[int]) -> str:
        for column in columns:
            text = cell_text(_cell(row, column))
            if text:
                return text
        return ""

    @staticmethod
    def _apply_metadata_rule(metadata: ReportMetadata, field: str, text: str) -> None:
        if not text:
            return
        if field in ("currency", "deposit_currency"):
            match = rules.CURRENCY_CODE_RE.search(text.upper())
            if match and (field == "currency" or metadata.currency == "USD"):
                metadata.currency = match.group(1)
        elif field == "broker":
            metadata.broker = metadata.broker or text
        elif field == "account_number":
            metadata.account_number = metadata.account_number or text
        elif field == "leverage":
            match = rules.LEVERAGE_RE.search(text)
            value = int(match.group(1)) if match else parse_int(text)
            if value:
                metadata.leverage = value
        elif field == "custom_comment":
            metadata.custom_comment = metadata.custom_comment or text

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    def parse_summary(self, rows: list[Sequence[Any]]) -> ReportSummary:
        summary = ReportSummary()
        seen: set[str] = set()

        for row in rows:
            for label_column, value_columns in rules.SUMMARY_VALUE_OFFSETS.items():
                label = normalize_label(_cell(row, label_column))
                if not label:
                    continue
                rule = next((r for r in rules.SUMMARY_RULES if r.matches(label)), None)
                if rule is None or rule.field in seen:
                    continue
                if self._apply_summary_rule(summary, rule, row, value_columns):
                    seen.add(rule.field)

        self._complete_drawdowns(summary)
        if summary.total_trades > 0:
            summary.win_rate = summary.profit_trades / summary.total_trades * 100
        return summary

    def _apply_summary_rule(
        self,
        summary: ReportSummary,
        rule: rules.LabelRule,
        row: Sequence[Any],
        value_columns: Sequence[int],
    ) -> bool:
        if rule.kind == "text":
            text = self._first_text(row, value_columns)
            if text:
                setattr(summary, rule.field, text)
                return True
            return False

        for column in value_columns:
            value = _cell(row, column)
            if is_blank(value):
                continue
            if rule.kind == "drawdown":
                absolute, percent = parse_drawdown(value)
                if absolute is None and percent is None:
                    continue
                if absolute is not None:
                    setattr(summary, rule.field, absolute)
                if percent is not None and getattr(summary, f"{rule.field}_percent") == 0.0:
                    setattr(summary, f"{rule.field}_percent", percent)
                return True
            if rule.kind == "drawdown_percent":
                absolute, percent = parse_drawdown(value)
                number = percent if percent is not None else absolute
                if number is None:
                    continue
                setattr(summary, rule.field, number)
                return True

            number = parse_number(value)
            if number is None:
                continue
            if rule.kind == "count":
                setattr(summary, rule.field, int(abs(number)))
            elif rule.kind == "abs_number":
                setattr(summary, rule.field, abs(number))
            else:
                setattr(summary, rule.field, number)
            return True
        return False

    def _complete_drawdowns(self, summary: ReportSummary) -> None:
        """Derive whichever of absolute/percent drawdown the report left out."""
        base = summary.initial_deposit if summary.initial_deposit > 0 else self.initial_balance
        if base <= 0:
            return
        for field in ("maximal_drawdown", "relative_drawdown"):
            absolute = getattr(summary, field)
            percent = getattr(summary, f"{field}_percent")
            if absolute == 0.0 and percent > 0.0:
                setattr(summary, field, percent / 100 * base)
            elif percent == 0.0 and absolute > 0.0:
                setattr(summary, f"{field}_percent", absolute / base * 100)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def find_deals_header(self, rows: list[Sequence[Any]]) -> int | None:
        """
        Locate the header row of the deals table.

        A standalone "Deals" section label wins; otherwise the first row whose
        first cell looks like a time/ticket header outside the "Orders" section.
        """
        in_orders = False
        fallback: int | None = None
        for index, row in enumerate(rows):
            section = _standalone_label(row)
            if section is not None:
                if section in rules.ORDERS_SECTION_TOKENS:
                    in_orders = True
                    continue
                if section in rules.DEALS_SECTION_TOKENS:
                    for candidate in range(index + 1, len(rows)):
                        if not _row_is_blank(rows[candidate]):
                            return candidate
                    return None
            if fallback is None and not in_orders:
                first_cell = normalize_label(_cell(row, 0))
                if first_cell and any(
                    first_cell == token or (len(token) > 1 and token in first_cell)
                    for token in rules.HEADER_FIRST_CELL_TOKENS
                ):
                    fallback = index
        return fallback

    @staticmethod
    def resolve_deal_columns(header: Sequence[Any]) -> dict[str, int]:
        """Map header names to columns, falling back to the fixed deals layout."""
        mapping: dict[str, int] = {}
        time_columns: list[int] = []
        price_columns: list[int] = []

        for index, value in enumerate(header):
            name = normalize_label(value)
            if not name:
                continue
            field = next(
                (f for f, tokens in rules.DEAL_HEADER_TOKENS.items() if name in tokens),
                None,
            ) or next(
                (f for f, tokens in rules.DEAL_HEADER_TOKENS.items() if any(len(t) > 2 and t in name for t in tokens)),
                None,
            )
            if field is None:
                continue
            if field == "time":
                time_columns.append(index)
            elif field == "price":
                price_columns.append(index)
            else:
                mapping.setdefault(field, index)

        if time_columns:
            mapping["open_time"] = time_columns[0]
            if len(time_columns) > 1:
                mapping["close_time"] = time_columns[1]
        if price_columns:
            mapping["open_price"] = price_columns[0]
            if len(price_columns) > 1:
                mapping["close_price"] = price_columns[1]

        if "open_time" not in mapping or "profit" not in mapping:
            return dict(rules.DEFAULT_DEAL_COLUMNS)
        return mapping

    def parse_transactions(self, rows: list[Sequence[Any]]) -> list[Transaction]:
        header_index = self.find_deals_header(rows)
        if header_index is None:
            return []

        columns = self.resolve_deal_columns(rows[header_index])
        transactions: list[Transaction] = []
        open_entries: dict[str, deque[Transaction]] = {}

        for index in range(header_index + 1, len(rows)):
            row = rows[index]
            if _row_is_blank(row) or len(row) < 5:
                continue
            try:
                transaction = self._parse_deal_row(row, columns, fallback_id=index)
            except (TypeError, ValueError, OverflowError) as exc:
                logger.debug("Skipping malformed deal row", extra=sanitize_log_extra({"row": index, "error": str(exc)}))
                continue
            if transaction is None:
                continue

            direction = normalize_label(_cell(row, columns["direction"])) if "direction" in columns else ""
            if not transaction.is_trade or not direction:
                transactions.append(transaction)
                continue
            entries = open_entries.setdefault(transaction.symbol, deque())
            if direction in rules.DIRECTION_IN_TOKENS:
                entries.append(transaction)
            elif direction in rules.DIRECTION_OUT_TOKENS:
                transactions.append(self._close_position(transaction, entries))
            elif direction in rules.DIRECTION_REVERSAL_TOKENS:
                closed_volume = entries[0].volume if entries else 0.0
                transactions.append(self._close_position(transaction, entries))
                entries.append(self._reversal_entry(transaction, closed_volume))
            else:
                transactions.append(transaction)

        return transactions

    def _parse_deal_row(self, row: Sequence[Any], columns: dict[str, int], *, fallback_id: int) -> Transaction | None:
        def value(field: str) -> Any:
            return _cell(row, columns[field]) if field in columns else None

        open_time = parse_cell_date(value("open_time"))
        if not is_valid_timestamp(open_time):
            return None

        close_time = parse_cell_date(value("close_time")) if "close_time" in columns else None
        if not is_valid_timestamp(close_time):
            close_time = None

        ticket = parse_int(value("ticket"))
        close_price = parse_number(value("close_price"))
        return Transaction(
            id=ticket if ticket is not None else fallback_id,
            kind=self.parse_trade_type(cell_text(value("side"))),
            open_time=open_time,
            close_time=close_time or open_time,
            symbol=cell_text(value("symbol")),
            volume=parse_number(value("volume")) or 0.0,
            open_price=parse_number(value("open_price")) or 0.0,
            close_price=close_price or None,
            sl=parse_number(value("sl")) or None,
            tp=parse_number(value("tp")) or None,
            commission=parse_number(value("commission")) or 0.0,
            swap=parse_number(value("swap")) or 0.0,
            profit=parse_number(value("profit")) or 0.0,
            balance=parse_number(value("balance")) or None,
            comment=cell_text(value("comment")) or None,
        )

    @staticmethod
    def _close_position(exit_deal: Transaction, entries: deque[Transaction] | None) -> Transaction:
        """Merge an exit deal with the oldest open entry on the same symbol."""
        if not entries:
            # Exit without a recorded entry: the trade direction is opposite to the exit side.
            kind = TransactionKind.SELL if exit_deal.kind == TransactionKind.BUY else TransactionKind.BUY
            return Transaction(
                id=exit_deal.id,
                kind=kind,
                open_time=exit_deal.open_time,
                close_time=exit_deal.open_time,
                symbol=exit_deal.symbol,
                volume=exit_deal.volume,
                open_price=exit_deal.open_price,
                close_price=exit_deal.open_price or None,
                commission=exit_deal.commission,
                swap=exit_deal.swap,
                profit=exit_deal.profit,
                balance=exit_deal.balance,
                comment=exit_deal.comment,
            )
        entry = entries.popleft()
        return Transaction(
            id=entry.id,
            kind=entry.kind,
            open_time=entry.open_time,
            close_time=exit_deal.open_time,
            symbol=exit_deal.symbol,
            volume=entry.volume,
            open_price=entry.open_price,
            close_price=exit_deal.open_price or None,
            sl=entry.sl,
            tp=entry.tp,
            commission=entry.commission + exit_deal.commission,
            swap=entry.swap + exit_deal.swap,
            profit=exit_deal.profit,
            balance=exit_deal.balance,
            comment=exit_deal.comment or entry.comment,
        )

    @staticmethod
    def _reversal_entry(deal: Transaction, closed_volume: float) -> Transaction:
        """Entry for the position a reversal deal opens; its volume is what the close did not use."""
        remaining = deal.volume - closed_volume
        return Transaction(
            id=deal.id,
            kind=deal.kind,
            open_time=deal.open_time,
            close_time=deal.open_time,
            symbol=deal.symbol,
            volume=remaining if remaining > 0 else deal.volume,
            open_price=deal.open_price,
            profit=0.0,
            comment=deal.comment,
        )

    @staticmethod
    def parse_trade_type(text: str) -> TransactionKind:
        normalized = text.lower()
        for token, kind in rules.SIDE_TOKENS:
            if token in normalized:
                return TransactionKind(kind)
        return TransactionKind.BUY

    # ------------------------------------------------------------------
    # Derived metrics
    # ------------------------------------------------------------------
    def calculate_derived_metrics(
        self, transactions: list[Transaction]
    ) -> tuple[dict[str, float], dict[str, float], list[tuple[datetime, float]]]:
        """
        Build monthly profit sums, monthly returns and the equity trace.

        The trace starts at the first transaction's reported balance when there
        is one, otherwise at the equity seed. A row's reported balance is taken
        as-is; rows without one advance the running total by their profit.
        """
        monthly_profits: dict[str, float] = {}
        equity_trace: list[tuple[datetime, float]] = []
        if not transactions:
            return monthly_profits, {}, equity_trace

        ordered = sorted(transactions, key=lambda tx: tx.open_time)
        for tx in ordered:
            if not tx.is_trade:
                continue
            key = month_key(tx.open_time)
            monthly_profits[key] = monthly_profits.get(key, 0.0) + tx.profit

        first = ordered[0]
        equity = first.balance if first.balance else self.equity_seed
        equity_trace.append((first.open_time, equity))
        for tx in ordered:
            equity = tx.balance if tx.balance else equity + tx.profit
            equity_trace.append((tx.closed_at, equity))

        base = self.equity_seed if self.equity_seed > 0 else 1.0
        monthly_returns = {month: profit / base * 100 for month, profit in monthly_profits.items()}
        return monthly_profits, monthly_returns, equity_trace


def parse_report_file(path: str | Path, **kwargs: Any) -> ParseResult:
    return MT5ReportParser(**kwargs).parse_file(path)
