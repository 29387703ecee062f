"""
Logging configuration for the agent process.
"""

import logging
import logging.config
from typing import Any, Dict, Optional

from ranchhand.errors import ConfigurationError

REDACTED = "***"


class SecretRedactionFilter(logging.Filter):
    """Filter that masks the cluster secret in every emitted record."""

    def __init__(self, secret: Optional[str] = None):
        super().__init__()
        self.secret = secret

    def filter(self, record: logging.LogRecord) -> bool:
        """Rewrite the record message with the secret masked."""
        if not self.secret:
            return True

        message = record.getMessage()
        if self.secret in message:
            record.msg = message.replace(self.secret, REDACTED)
            record.args = None
        return True  # Never drop records, only rewrite them


def get_logging_config(level: str = "INFO", secret: Optional[str] = None) -> Dict[str, Any]:
    """Get logging configuration with secret redaction on every handler."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "secret_filter": {
                "()": SecretRedactionFilter,
                "secret": secret,
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "filters": ["secret_filter"],
            }
        },
        "loggers": {
            "ranchhand": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
            # Frame-level chatter from the websocket and k8s client stacks
            "websockets": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
            "kubernetes": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
            "urllib3": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
        },
        "root": {
            "level": level,
            "handlers": ["default"],
        },
    }


def configure_logging(level: str = "INFO", secret: Optional[str] = None) -> None:
    """
    Apply the agent logging configuration.

    Raises:
        ConfigurationError: If `level` is not a logging level name
    """
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {level!r}")
    logging.config.dictConfig(get_logging_config(level=level, secret=secret))
