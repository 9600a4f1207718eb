"""Custom exceptions for the application."""
from __future__ import annotations

from typing import Any


class ReportParseError(Exception):
    """Exception raised when a backtest report file cannot be read or decoded."""

    def __init__(self, reason: str, source_file: str | None = None, context_data: dict[str, Any] | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.source_file = source_file
        self.context_data = context_data or {}


class ForwardLogParseError(Exception):
    """Exception raised when a forward-test log cannot be read or decoded."""

    def __init__(self, reason: str, source_file: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.source_file = source_file


class StrategyNotFoundError(Exception):
    """Exception raised when no strategy matches the requested magic number."""

    def __init__(self, magic_number: int) -> None:
        super().__init__(f"Strategy {magic_number} not found")
        self.magic_number = magic_number


class InvalidDateRangeError(Exception):
    """Exception raised when a portfolio date range is unparseable or inverted."""

    def __init__(self, start: Any, end: Any, reason: str = "start date must not be after end date") -> None:
        super().__init__(reason)
        self.start = start
        self.end = end
        self.reason = reason
