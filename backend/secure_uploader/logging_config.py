"""Logging setup: plain text for local runs, JSON lines for hosted logs."""
from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from traceback import format_exception

from secure_uploader.config import Settings

_STACK_LIMIT = 4000


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, object] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            exc_type, exc_value = record.exc_info[0], record.exc_info[1]
            stack = "".join(format_exception(*record.exc_info))
            payload["error"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack": stack[:_STACK_LIMIT] + ("...(truncated)" if len(stack) > _STACK_LIMIT else ""),
            }

        return json.dumps(payload, ensure_ascii=False)


def setup_logging(settings: Settings) -> None:
    level = settings.LOG_LEVEL.upper()
    formatter_name = "json" if settings.LOG_FORMAT.lower() == "json" else "plain"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "%(asctime)s %(levelname)-5s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
            },
            "handlers": {
                "stream": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": formatter_name,
                }
            },
            "root": {"level": level, "handlers": ["stream"]},
            "loggers": {
                "uvicorn": {"level": "INFO", "handlers": [], "propagate": True},
                "uvicorn.error": {"level": "INFO", "handlers": [], "propagate": True},
                "uvicorn.access": {"level": "INFO", "handlers": [], "propagate": True},
            },
        }
    )
