"""CLI script for inspecting a single backtest report."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from quantfolio.analytics.statistics import calculate_statistics
from quantfolio.core.logging import logger
from quantfolio.parsers.excel_report import MT5ReportParser
from quantfolio.parsers.types import ReportParseResult
from quantfolio.utils.formatters import format_currency, format_date, format_number, format_percent


def describe_report(result: ReportParseResult, *, show_months: bool = True) -> list[str]:
    """Render parsed metadata, summary and recomputed figures as text lines."""
    metadata, summary = result.metadata, result.summary
    currency = metadata.currency
    trades = sorted((tx for tx in result.transactions if tx.is_trade), key=lambda tx: tx.open_time)
    stats = calculate_statistics(result.transactions)

    lines = [
        f"Magic number:      {metadata.magic_number or '-'}",
        f"Symbol:            {summary.symbol or '-'}",
        f"Timeframe:         {summary.timeframe or '-'}",
        f"Currency:          {currency}",
        f"Broker:            {metadata.broker or '-'}",
        f"Transactions:      {format_number(len(result.transactions))} ({format_number(len(trades))} trades)",
    ]
    if trades:
        lines.append(f"First trade:       {format_date(trades[0].open_time)}")
        lines.append(f"Last trade:        {format_date(trades[-1].open_time)}")
    lines += [
        "",
        "                    reported          recomputed",
        f"Net profit:        {format_currency(summary.total_net_profit, currency):>16}  {format_currency(stats.total_net_profit, currency):>16}",
        f"Profit factor:     {format_number(summary.profit_factor, 2):>16}  {format_number(stats.profit_factor, 2):>16}",
        f"Max drawdown:      {format_currency(summary.maximal_drawdown, currency):>16}  {format_currency(stats.max_drawdown, currency):>16}",
        f"Total trades:      {format_number(summary.total_trades):>16}  {format_number(stats.total_trades):>16}",
        f"Win rate:          {format_percent(summary.win_rate):>16}  {format_percent(stats.win_rate):>16}",
        f"Sharpe ratio:      {format_number(summary.sharpe_ratio, 2):>16}  {format_number(stats.sharpe_ratio, 2):>16}",
    ]
    if show_months and result.monthly_profits:
        lines += ["", "Month      profit            return"]
        for month, profit in result.monthly_profits.items():
            lines.append(
                f"{month}  {format_currency(profit, currency):>16}  {format_percent(result.monthly_returns.get(month, 0.0)):>10}"
            )
    return lines


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Inspect a strategy tester report")
    parser.add_argument("path", type=Path, help="Report workbook (.xlsx)")
    parser.add_argument("--no-months", action="store_true", help="Skip the monthly breakdown")
    args = parser.parse_args(argv)

    result = MT5ReportParser().parse_file(args.path)
    if not result.success:
        logger.error("Report could not be parsed", extra={"path": str(args.path), "error": result.message})
        print(f"Error: {result.message}", file=sys.stderr)
        return 1

    print("\n".join(describe_report(result, show_months=not args.no_months)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
