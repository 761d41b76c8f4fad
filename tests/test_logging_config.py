"""Tests for logging setup and secret sanitization."""

import logging
from unittest.mock import MagicMock

import pytest
import structlog

from dialogwire.logging_config import LOGGER_PREFIX, SUBSYSTEMS, sanitize_secrets, setup_logging

BOT_TOKEN = "123456789:AAHdqTcvCH1vGWJxfSeofSAs0K5PALDsaw1"


def test_bot_token_scrubbed_from_strings():
    event = sanitize_secrets(None, "info", {"event": "x", "contents": f"my token is {BOT_TOKEN}"})
    assert BOT_TOKEN not in event["contents"]
    assert "***REDACTED***" in event["contents"]


def test_bearer_token_scrubbed():
    event = sanitize_secrets(None, "info", {"header": "Bearer abcdefghijklmnopqrstuvwxyz012345"})
    assert event["header"] == "***REDACTED***"


def test_nested_values_scrubbed():
    event = sanitize_secrets(None, "info", {
        "items": [BOT_TOKEN, 3],
        "pair": (BOT_TOKEN,),
        "extra": {"token": BOT_TOKEN, "count": 1},
    })
    assert event["items"] == ["***REDACTED***", 3]
    assert event["pair"] == ("***REDACTED***",)
    assert event["extra"] == {"token": "***REDACTED***", "count": 1}


def test_short_numbers_untouched():
    event = sanitize_secrets(None, "info", {"contents": "meet at 12:30"})
    assert event["contents"] == "meet at 12:30"


@pytest.fixture
def restore_logging():
    yield
    for name in (LOGGER_PREFIX, *(f"{LOGGER_PREFIX}.{s}" for s in SUBSYSTEMS)):
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


def test_setup_logging_creates_subsystem_files(tmp_path, restore_logging):
    config = MagicMock()
    config.log_dir = tmp_path
    config.logging_level = "info"
    config.logging_subsystem_levels = {"resolver": "debug", "dispatch": "nonsense"}
    config.logging_max_file_size_mb = 1
    config.logging_backup_count = 1

    setup_logging(config)

    assert (tmp_path / "dialogwire.log").exists()
    for subsystem in SUBSYSTEMS:
        assert (tmp_path / f"{subsystem}.log").exists()
    assert logging.getLogger("dialogwire.resolver").level == logging.DEBUG
    assert logging.getLogger("dialogwire.dispatch").level == logging.INFO
