"""
Forward-test log parser.

Forward logs are delimited exports of live trades for several strategies at
once. Columns are located by header name because their order changes between
export versions, and rows are grouped by the magic number of the strategy.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from quantfolio.core.exceptions import ForwardLogParseError
from quantfolio.core.logging import logger
from quantfolio.parsers.types import Provenance, Transaction, TransactionKind

FORWARD_COMMENT_PREFIX = "[FWD]"
MIN_ROW_FIELDS = 10
UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")
ENCODINGS = ("utf-8-sig", "latin-1")

# Resolved in this order; a column claimed by one field is not offered to the next.
FORWARD_COLUMNS: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    # field, header tokens, tokens that disqualify a header
    ("magic", ("magic number", "magic"), ()),
    ("open_date", ("open date", "date"), ("close",)),
    ("open_time", ("open time", "time"), ("close", "date")),
    ("close_price", ("close price",), ()),
    ("open_price", ("open price", "price"), ("close",)),
    ("net_profit", ("net profit", "profit"), ("gross",)),
    ("commission", ("commission",), ()),
    ("swap", ("swap",), ()),
    ("side", ("type", "side", "direction"), ()),
    ("ticket", ("ticket", "order", "deal", "#"), ()),
    ("symbol", ("symbol", "instrument"), ()),
    ("volume", ("volume", "lots", "size"), ()),
    ("comment", ("comment",), ()),
)

DATE_TIME_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d",
)


@dataclass
class ForwardLogData:
    transactions_by_strategy: dict[int, list[Transaction]] = field(default_factory=dict)
    start_date: datetime = field(default_factory=datetime.now)
    end_date: datetime = field(default_factory=datetime.now)

    @property
    def total_trades(self) -> int:
        return sum(len(group) for group in self.transactions_by_strategy.values())

    @property
    def total_profit(self) -> float:
        return sum(tx.profit for group in self.transactions_by_strategy.values() for tx in group)

    def for_strategy(self, magic_number: int) -> list[Transaction]:
        return self.transactions_by_strategy.get(magic_number, [])


def resolve_columns(header: list[str]) -> dict[str, int]:
    """Map forward-log fields to header indices: exact names first, then substrings."""
    names = [cell.strip().lower() for cell in header]
    columns: dict[str, int] = {}
    claimed: set[int] = set()

    for field_name, tokens, excluded in FORWARD_COLUMNS:
        index = next(
            (i for token in tokens for i, name in enumerate(names) if i not in claimed and name == token),
            None,
        )
        if index is None:
            index = next(
                (
                    i
                    for i, name in enumerate(names)
                    if i not in claimed
                    and any(token in name for token in tokens)
                    and not any(token in name for token in excluded)
                ),
                None,
            )
        if index is not None:
            columns[field_name] = index
            claimed.add(index)
    return columns


def _parse_float(text: str) -> float | None:
    cleaned = text.strip().replace(",", "")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_forward_datetime(date_text: str, time_text: str = "") -> datetime | None:
    """Combine a slash-delimited date and a colon-delimited time; None when invalid."""
    combined = f"{date_text.strip()} {time_text.strip()}".strip()
    if not combined:
        return None
    for fmt in DATE_TIME_FORMATS:
        try:
            return datetime.strptime(combined, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(combined.replace("/", "-"))
    except ValueError:
        return None


def _split_separator_line(text: str) -> tuple[str, str]:
    """Strip an optional "sep=;" declaration and return (delimiter, remaining text)."""
    first_line, _, rest = text.partition("\n")
    declaration = first_line.strip().lower()
    if declaration.startswith("sep=") and len(declaration) > 4:
        return first_line.strip()[4], rest
    return ",", text


def parse_forward_log(text: str, *, source: str = "<text>") -> ForwardLogData:
    """Parse forward-log content into transactions grouped by magic number."""
    delimiter, body = _split_separator_line(text.lstrip("\ufeff"))
    rows = [row for row in csv.reader(io.StringIO(body), delimiter=delimiter) if any(cell.strip() for cell in row)]
    data = ForwardLogData()
    if not rows:
        logger.info("Forward log is empty", extra={"source_file": source})
        return data

    columns = resolve_columns(rows[0])
    if "open_date" not in columns and "open_time" in columns:
        # Single timestamp column holding both date and time.
        columns["open_date"] = columns.pop("open_time")
    missing = [name for name in ("magic", "open_date", "net_profit") if name not in columns]
    if missing:
        logger.warning("Forward log header is missing columns", extra={"source_file": source, "missing": missing})
        return data

    groups: dict[int, list[Transaction]] = {}
    skipped = 0
    start: datetime | None = None
    end: datetime | None = None

    for line_number, row in enumerate(rows[1:], start=2):
        transaction, magic = _parse_row(row, columns, line_number)
        if transaction is None:
            skipped += 1
            continue
        groups.setdefault(magic, []).append(transaction)
        start = transaction.open_time if start is None else min(start, transaction.open_time)
        end = transaction.open_time if end is None else max(end, transaction.open_time)

    for group in groups.values():
        group.sort(key=lambda tx: tx.open_time)

    data.transactions_by_strategy = groups
    if start is not None and end is not None:
        data.start_date, data.end_date = start, end

    logger.info(
        "Forward log parsed",
        extra={
            "source_file": source,
            "strategies": len(groups),
            "transactions": data.total_trades,
            "skipped_rows": skipped,
        },
    )
    return data


def _parse_row(row: list[str], columns: dict[str, int], line_number: int) -> tuple[Transaction | None, int]:
    if len(row) < MIN_ROW_FIELDS:
        logger.debug("Skipping short forward row", extra={"line": line_number, "fields": len(row)})
        return None, 0

    def cell(name: str) -> str:
        index = columns.get(name)
        if index is None or index >= len(row):
            return ""
        return row[index].strip()

    magic_value = _parse_float(cell("magic"))
    magic = int(magic_value) if magic_value is not None else 0
    if magic == 0:
        logger.debug("Skipping forward row without magic number", extra={"line": line_number})
        return None, 0

    open_time = parse_forward_datetime(cell("open_date"), cell("open_time"))
    if open_time is None:
        logger.debug("Skipping forward row with invalid date", extra={"line": line_number})
        return None, 0

    profit = _parse_float(cell("net_profit"))
    volume = _parse_float(cell("volume")) if "volume" in columns else 0.0
    if profit is None or volume is None:
        logger.debug("Skipping forward row with invalid numbers", extra={"line": line_number})
        return None, 0

    ticket = _parse_float(cell("ticket"))
    comment = cell("comment")
    return (
        Transaction(
            id=int(ticket) if ticket is not None else line_number,
            kind=TransactionKind.BUY if "buy" in cell("side").lower() else TransactionKind.SELL,
            open_time=open_time,
            close_time=open_time,
            symbol=cell("symbol"),
            volume=volume,
            open_price=_parse_float(cell("open_price")) or 0.0,
            close_price=_parse_float(cell("close_price")),
            commission=_parse_float(cell("commission")) or 0.0,
            swap=_parse_float(cell("swap")) or 0.0,
            profit=profit,
            balance=None,
            comment=f"{FORWARD_COMMENT_PREFIX} {comment}".strip(),
            provenance=Provenance.FORWARD_TEST,
        ),
        magic,
    )


def read_forward_text(path: str | Path) -> str:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ForwardLogParseError(f"Unable to read forward log: {exc}", source_file=str(path)) from exc

    if raw.startswith(UTF16_BOMS):
        try:
            return raw.decode("utf-16")
        except UnicodeDecodeError as exc:
            raise ForwardLogParseError("Unable to decode UTF-16 forward log", source_file=str(path)) from exc
    for encoding in ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ForwardLogParseError("Unable to decode forward log", source_file=str(path))


def parse_forward_file(path: str | Path) -> ForwardLogData:
    path = Path(path)
    return parse_forward_log(read_forward_text(path), source=path.name)
