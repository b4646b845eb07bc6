"""Logging setup for the Don Cash bot.

Production runs emit one JSON object per line on stdout. Structured fields
travel in ``extra={"context": {...}}``; a ``chat_id`` found there is lifted to
the top level so a single conversation can be followed with one filter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_PREFIX = "doncash"

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "google.auth", "urllib3")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        context = dict(getattr(record, "context", None) or {})
        chat_id = context.pop("chat_id", None)
        if chat_id:
            entry["chat_id"] = chat_id
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            entry["where"] = f"{record.module}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local runs; context is appended as key=value."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(TextFormatter() if fmt == "text" else JSONFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


class ChatLoggerAdapter(logging.LoggerAdapter):
    """Merges the bound chat fields into any ``context=`` given per call."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {**self.extra, **(kwargs.pop("context", None) or {})}
        kwargs["extra"] = {"context": context}
        return msg, kwargs


def get_chat_logger(name: str, chat_id: str, **extra: Any) -> ChatLoggerAdapter:
    return ChatLoggerAdapter(get_logger(name), {"chat_id": chat_id, **extra})
