"""
Tests for logging configuration and secret redaction.
"""

import io
import logging
import logging.config
import os
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ranchhand.errors import ConfigurationError
from ranchhand.logging_config import REDACTED, SecretRedactionFilter, configure_logging, get_logging_config

CONFIGURED_LOGGERS = ("ranchhand", "websockets", "kubernetes", "urllib3")


@pytest.fixture
def restore_logging():
    """Undo dictConfig changes so later tests see default propagation."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for name in CONFIGURED_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


def _record(msg, *args):
    return logging.LogRecord("ranchhand.test", logging.INFO, __file__, 1, msg, args, None)


class TestSecretRedactionFilter:
    def test_masks_secret_in_message(self):
        record = _record("Joining topic cluster:c1:topsecret")

        assert SecretRedactionFilter("topsecret").filter(record) is True
        assert record.getMessage() == f"Joining topic cluster:c1:{REDACTED}"

    def test_masks_secret_in_arguments(self):
        record = _record("topic=%s", "cluster:c1:topsecret")

        SecretRedactionFilter("topsecret").filter(record)

        assert "topsecret" not in record.getMessage()

    def test_no_secret_configured(self):
        record = _record("nothing to hide")

        assert SecretRedactionFilter(None).filter(record) is True
        assert record.getMessage() == "nothing to hide"


def test_configured_handler_redacts_output(restore_logging):
    config = get_logging_config(level="DEBUG", secret="topsecret")
    stream = io.StringIO()
    config["handlers"]["default"]["stream"] = stream
    logging.config.dictConfig(config)

    logging.getLogger("ranchhand.test").info("secret is topsecret")

    assert "topsecret" not in stream.getvalue()
    assert REDACTED in stream.getvalue()


def test_library_loggers_quietened():
    config = get_logging_config()

    assert config["loggers"]["websockets"]["level"] == "WARNING"
    assert config["loggers"]["ranchhand"]["level"] == "INFO"


@pytest.mark.parametrize("level", ["VERBOSE", "info", ""])
def test_unknown_level_rejected_before_configuring(level):
    with patch("logging.config.dictConfig") as dict_config:
        with pytest.raises(ConfigurationError):
            configure_logging(level=level)
    dict_config.assert_not_called()


def test_known_level_applied(restore_logging):
    configure_logging(level="WARNING")

    assert logging.getLogger("ranchhand").level == logging.WARNING
