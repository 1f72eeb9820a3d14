"""Logging configuration shared by the CLI and the API server."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

# Client libraries that log every request at INFO.
_DEFAULT_LEVELS: dict[str, str] = {"httpx": "WARNING", "httpcore": "WARNING"}

_LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
_LOG_FILE_BACKUPS = 3


def _formatter(structured: bool) -> dict[str, Any]:
    if structured:
        return {
            "format": '{{"time": "{asctime}", "level": "{levelname}", '
            '"logger": "{name}", "message": "{message}"}}',
            "style": "{",
        }
    return {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}


def build_logging_config(settings: LoggingSettings) -> dict[str, Any]:
    """Return the ``dictConfig`` document described by ``settings``."""
    level = settings.level.upper()
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": level,
        },
    }
    if settings.file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "level": level,
            "filename": str(settings.file),
            "maxBytes": _LOG_FILE_MAX_BYTES,
            "backupCount": _LOG_FILE_BACKUPS,
            "encoding": "utf-8",
        }

    levels = {**_DEFAULT_LEVELS, **settings.loggers}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": _formatter(settings.structured)},
        "handlers": handlers,
        "loggers": {name: {"level": value.upper()} for name, value in levels.items()},
        "root": {"handlers": list(handlers), "level": level},
    }


def configure_logging(settings: LoggingSettings) -> None:
    """Configure application logging according to provided settings."""
    logging.config.dictConfig(build_logging_config(settings))


__all__ = ["build_logging_config", "configure_logging"]
