"""Logging helpers.

row_forge never configures logging on import; applications call
``configure_logging`` (or wire the ``row_forge`` logger themselves).

Usage:
    from row_forge.utils.logging import configure_logging, get_logger

    configure_logging(level="DEBUG")
    log = get_logger(__name__)
    log.debug("compiled factory", extra={"columns": 3})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any

# Attributes present on every LogRecord; anything else came in via ``extra``.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message"}


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "WARNING", json_logs: bool = False) -> None:
    """Attach a stream handler to the ``row_forge`` logger.

    Args:
        level: Logging level name (e.g. "DEBUG", "INFO").
        json_logs: Emit JSON lines instead of the console format.
    """
    formatter_name = "json" if json_logs else "console"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "row_forge": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "level": level,
                }
            },
            "loggers": {
                "row_forge": {
                    "handlers": ["row_forge"],
                    "level": level,
                    "propagate": False,
                }
            },
        }
    )


def configure_from_settings() -> None:
    """Configure logging from ``RowForgeSettings``."""
    from row_forge.config import get_settings

    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the ``row_forge`` namespace."""
    if name is None:
        return logging.getLogger("row_forge")
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_from_settings", "configure_logging", "get_logger"]
