"""Portfolio dashboard engine for algorithmic trading strategies."""

__version__ = "0.1.0"
