"""Structured logging configuration."""
import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from quantfolio.core.config import settings

# Attributes every LogRecord already carries; an ``extra`` key with one of these names makes logging raise.
RESERVED_LOG_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Libraries whose INFO output would drown the per-file parse logs.
NOISY_LOGGERS = ("sqlalchemy.engine", "openpyxl")

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s %(module)s %(lineno)d"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Send JSON lines to stdout. Safe to call more than once."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    if not any(getattr(handler, "_quantfolio", False) for handler in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT, static_fields={"service": "quantfolio"}))
        handler._quantfolio = True
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # openpyxl reports workbook oddities (e.g. missing default style) through warnings.
    logging.captureWarnings(True)
    return root_logger


logger = logging.getLogger("quantfolio")
setup_logging()


def sanitize_log_extra(extra: dict[str, Any] | None, *, prefix: str = "extra_") -> dict[str, Any]:
    """
    Prefix keys that collide with LogRecord attributes.

    Report paths and file names are logged constantly, and "filename" is one of
    those attributes, so payloads built from arbitrary keys go through here.
    """
    if not extra:
        return {}
    return {f"{prefix}{key}" if key in RESERVED_LOG_RECORD_ATTRS else key: value for key, value in extra.items()}
