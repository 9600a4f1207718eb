"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Logging
    LOG_LEVEL: str = "INFO"

    # Data paths
    DATA_DIR: str = "./data"
    BACKTEST_DIR: str = "./data/backtest"
    FORWARD_DIR: str = "./data/forward"
    STRATEGY_NAMES_FILE: str = "./data/strategy_names.json"
    BACKTEST_FILE_PATTERNS: list[str] = ["*.xlsx", "*.xls"]
    FORWARD_FILE_PATTERN: str = "*.csv"

    # Normalization
    TARGET_DRAWDOWN: float = 1000.0  # Every strategy is rescaled so its max drawdown equals this amount
    INITIAL_BALANCE: float = 10000.0  # Balance used for percentage drawdown and monthly Sharpe
    EQUITY_SEED: float = 1000.0  # Seed of the per-report equity trace when no balance column is present

    # Portfolio
    DRAWDOWN_CAPITAL_RATIO: float = 0.20  # Max drawdown represents 20% of the allocated capital
    TRADING_DAYS_PER_YEAR: int = 252
    DAYS_PER_YEAR: float = 365.25

    # Loader
    LOADER_MAX_WORKERS: int = 4

    # Database (alternate snapshot store)
    DATABASE_URL: str = "sqlite:///./data/quantfolio.db"

    # API
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
