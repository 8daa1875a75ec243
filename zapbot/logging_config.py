"""JSON logging for zapbot.

Every line is one JSON object on stdout. Per-chat fields (the WhatsApp JID and
whatever the caller adds) travel in the ``context`` key, so one conversation can
be followed across the inbound router, the generator and the voice sessions.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own creation time."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Gemini/WhatsApp payload previews are Portuguese text, keep them readable
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route all logging to stdout as JSON. Called once when the app module loads."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    # Request lines from the gateway and Gemini clients would drown the chat logs
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger under the ``zapbot.`` namespace, e.g. ``zapbot.voice_sessions``."""
    return logging.getLogger(f"zapbot.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Adds the bound chat fields to every record.

    Callers pass per-call fields with ``context={...}``; they are merged over
    the bound ones instead of replacing them.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            kwargs["extra"] = {"context": {**self.extra, **(context or {})}}
        return msg, kwargs


def chat_logger(name: str, chat_id: str) -> LoggerAdapter:
    """Logger bound to one WhatsApp conversation."""
    return LoggerAdapter(get_logger(name), {"chat_id": chat_id})
