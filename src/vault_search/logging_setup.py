"""
Logging configuration for the CLI and the HTTP server.
"""

from __future__ import annotations

import logging
import logging.config
import os


def resolve_log_level(override: str | None = None) -> int:
    raw = (override or os.getenv("LOG_LEVEL", "info")).strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str | None = None) -> None:
    """Route all package logs through a rich console handler."""
    loglevel = resolve_log_level(level)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "rich": {"format": "%(name)s: %(message)s", "datefmt": "[%X]"},
            },
            "handlers": {
                "console": {
                    "class": "rich.logging.RichHandler",
                    "formatter": "rich",
                    "level": loglevel,
                    "rich_tracebacks": True,
                    "show_path": False,
                },
            },
            "root": {"handlers": ["console"], "level": loglevel},
        }
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if loglevel == logging.DEBUG else logging.WARNING
    )
