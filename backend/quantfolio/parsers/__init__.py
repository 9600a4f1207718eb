"""Parsers for strategy tester reports and forward-test logs."""

from .excel_report import MT5ReportParser, parse_report_file  # noqa: F401
from .forward_log import ForwardLogData, parse_forward_file, parse_forward_log  # noqa: F401
from .types import (  # noqa: F401
    ParseFailure,
    ParseResult,
    Provenance,
    ReportMetadata,
    ReportParseResult,
    ReportSummary,
    Transaction,
    TransactionKind,
)
