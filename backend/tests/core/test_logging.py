import logging

from quantfolio.core.logging import logger, sanitize_log_extra, setup_logging


def test_sanitize_log_extra_prefixes_reserved_keys():
    payload = sanitize_log_extra({"filename": "1234.xlsx", "message": "x", "magic_number": 1234})
    assert payload == {"extra_filename": "1234.xlsx", "extra_message": "x", "magic_number": 1234}
    assert sanitize_log_extra(None) == {}


def test_sanitized_payload_can_be_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="quantfolio"):
        logger.warning("Report skipped", extra=sanitize_log_extra({"filename": "a.xlsx"}))
    assert caplog.records[-1].extra_filename == "a.xlsx"


def test_setup_logging_is_idempotent():
    root = setup_logging()
    handlers = len(root.handlers)
    setup_logging()
    assert len(root.handlers) == handlers
