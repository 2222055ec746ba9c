"""
Logging setup for the API process and the CLI scripts.

Modules log through ``logging.getLogger(__name__)``; ``configure_logging``
attaches one console handler to the root logger on first call and is a no-op
afterwards.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("sqlalchemy.engine", "multipart", "python_multipart")

_is_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root and ``roster`` loggers once.

    Args:
        level: Log level name such as "DEBUG" or "INFO"; defaults to INFO.
    """
    global _is_configured
    if _is_configured:
        return

    log_level = (level or "INFO").upper()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "level": log_level,
                }
            },
            "root": {"handlers": ["console"], "level": log_level},
            "loggers": {
                "roster": {"level": log_level},
                **{name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            },
        }
    )
    _is_configured = True
