"""Process-wide logging setup: one console handler, request ids on every line."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Dict

from app.core.context import get_request_id

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | req=%(request_id)s | %(message)s"

# SDK chatter (HTTP retries, trace uploads) stays at WARNING unless debugging.
LIBRARY_LOGGERS = ("httpx", "httpcore", "openai", "opik", "sqlalchemy.engine")


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id bound by RequestIDMiddleware, or "-"."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - minimal logic
        record.request_id = get_request_id() or "-"
        return True


def _library_levels(log_level: str) -> Dict[str, Dict[str, str]]:
    level = "DEBUG" if log_level.upper() == "DEBUG" else "WARNING"
    return {name: {"level": level} for name in LIBRARY_LOGGERS}


def configure_logging(*, log_level: str = "INFO") -> None:
    """Install the dictConfig once; later calls are ignored."""
    if getattr(configure_logging, "_configured", False):
        return

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"crest": {"format": LOG_FORMAT}},
            "filters": {"request_id": {"()": RequestIdFilter}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "crest",
                    "filters": ["request_id"],
                }
            },
            "loggers": {"app.http": {"level": log_level}, **_library_levels(log_level)},
            "root": {"handlers": ["console"], "level": log_level},
        }
    )
    configure_logging._configured = True  # type: ignore[attr-defined]
    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
