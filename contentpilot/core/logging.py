"""Structured logging configuration using dictConfig.

Development gets a readable console line; production emits one JSON object per
record via python-json-logger. Every record is stamped with the service name so
the scheduler loop and the HTTP handlers can be told apart in shared output.
"""
import logging
import logging.config
import sys
from typing import Any, Dict, Optional

from .settings import get_settings

CONSOLE_FORMAT = "%(asctime)s [%(service)s] [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(service)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty dependencies, capped at the given level
QUIET_LOGGERS = {
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "aiosqlite": "WARNING",
}

_configured_service: Optional[str] = None


class ServiceFilter(logging.Filter):
    """Adds ``record.service`` so formatters can reference it."""

    def __init__(self, service_name: str = "contentpilot"):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self.service_name
        return True


def get_logging_config(service_name: Optional[str] = None) -> Dict[str, Any]:
    """Get logging configuration dictionary."""
    settings = get_settings()
    level = settings.log_level.upper()

    loggers: Dict[str, Any] = {
        "contentpilot": {"level": level, "handlers": ["console"], "propagate": False},
    }
    for name, quiet_level in QUIET_LOGGERS.items():
        loggers[name] = {"level": quiet_level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "service": {
                "()": ServiceFilter,
                "service_name": service_name or "contentpilot",
            }
        },
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": JSON_FORMAT,
                "datefmt": DATE_FORMAT,
            },
            "console": {
                "format": CONSOLE_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "json" if settings.environment == "production" else "console",
                "filters": ["service"],
                "stream": sys.stdout,
            }
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(service_name: Optional[str] = None) -> None:
    """Configure logging once per service name; repeated calls are no-ops."""
    global _configured_service
    service_name = service_name or "contentpilot"
    if _configured_service == service_name:
        return
    logging.config.dictConfig(get_logging_config(service_name))
    _configured_service = service_name


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
