"""Structured logging for crosscache processes.

Records are tagged with the origin ID of the emitting process (and the
broadcast channel, inside ``LogContext``) so logs from several peers can be
told apart once aggregated.

Usage:
    from crosscache.observability.logging import configure_logging

    configure_logging(json_format=True, level="INFO", origin_id=settings.instance_id)

    logger = logging.getLogger(__name__)
    logger.info("Cache started")  # Includes origin_id
"""

from __future__ import annotations

import contextvars
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

origin_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("origin_id", default="")
channel_var: contextvars.ContextVar[str] = contextvars.ContextVar("channel", default="")


def _context() -> dict[str, str]:
    context = {"origin_id": origin_id_var.get(), "channel": channel_var.get()}
    return {key: value for key, value in context.items() if value}


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    {"timestamp": "2026-01-10T12:34:56.789000+00:00", "level": "INFO",
     "logger": "crosscache.cache.broadcaster", "message": "...",
     "origin_id": "a1b2c3d4", "channel": "crosscache:mutation"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(log_data, default=str).decode()


class ConsoleFormatter(logging.Formatter):
    """Single-line formatter for terminals.

    2026-01-10 12:34:56 | INFO     | crosscache.cache.store | Cache store created | origin=a1b2c3d4
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        context = "".join(
            f" | {key.removesuffix('_id')}={value}" for key, value in _context().items()
        )
        result = f"{timestamp} | {record.levelname:8} | {record.name} | {record.getMessage()}"
        result += context

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    origin_id: str | None = None,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        json_format: Use JSON lines instead of the console format
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        origin_id: Process identity attached to every record
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter())
    root_logger.addHandler(handler)

    if origin_id:
        origin_id_var.set(origin_id)

    logging.getLogger("redis").setLevel(logging.WARNING)


class LogContext:
    """Temporarily set the origin and channel attached to log records.

    Usage:
        with LogContext(channel="crosscache:mutation"):
            logger.info("Applying peer mutation")
    """

    def __init__(self, origin_id: str | None = None, channel: str | None = None) -> None:
        self.origin_id = origin_id
        self.channel = channel
        self._tokens: list[tuple[contextvars.ContextVar[str], contextvars.Token[str]]] = []

    def __enter__(self) -> LogContext:
        if self.origin_id is not None:
            self._tokens.append((origin_id_var, origin_id_var.set(self.origin_id)))
        if self.channel is not None:
            self._tokens.append((channel_var, channel_var.set(self.channel)))
        return self

    def __exit__(self, *args: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
