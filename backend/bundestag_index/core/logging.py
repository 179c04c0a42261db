"""JSON logging for the indexer service and CLI."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

LEVEL_ENV = "BTIX_LOG_LEVEL"
FORMAT_ENV = "BTIX_LOG_FORMAT"
CONTEXT_PREFIX = "ctx_"

# chatty at INFO during every DIP page request
_QUIET_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``ctx_*`` extras are copied verbatim."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith(CONTEXT_PREFIX):
                payload[key] = value
        return orjson.dumps(payload, default=str).decode("utf-8")


def log_context(**values: Any) -> dict[str, Any]:
    """Build a logging ``extra`` mapping rendered by :class:`JsonFormatter`."""
    return {f"{CONTEXT_PREFIX}{key}": value for key, value in values.items()}


def configure_logging(level: str | int | None = None, use_json: bool | None = None) -> None:
    """Install a single stdout handler on the root logger.

    Defaults come from ``BTIX_LOG_LEVEL`` and ``BTIX_LOG_FORMAT`` (``json`` or
    ``text``).
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV, "INFO").upper()
    if use_json is None:
        use_json = os.environ.get(FORMAT_ENV, "json").lower() != "text"
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"))
    root.handlers = [handler]
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "bundestag_index") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "log_context"]
