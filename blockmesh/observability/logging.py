"""
Structured Logging: JSON-Formatted with Context Fields

Provides:
- JSON-formatted log output (one object per line)
- Request-scoped fields via ``log_context``
- Log level filtering

Block store modules log through ``logging.getLogger(__name__)``;
this module only shapes the output.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Iterator, Optional, TextIO


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


# Context variable for request-scoped fields
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Attributes every LogRecord carries; anything else came in via ``extra``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime"}


@dataclass
class LogRecord:
    """Structured log record."""
    timestamp: str
    level: str
    message: str
    logger_name: str
    extra: dict[str, Any] = field(default_factory=dict)
    
    def to_json(self) -> str:
        data = {
            "@timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "logger": self.logger_name,
        }
        data.update(self.extra)
        return json.dumps(data, default=str)


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter.
    
    Output fields: ``@timestamp``, ``level``, ``message``, ``logger``,
    then context fields, record extras and ``exception`` text.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        extra = dict(_log_context.get())
        
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                extra[key] = value
        
        if record.exc_info:
            extra["exception"] = self.formatException(record.exc_info)
        
        log_record = LogRecord(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            message=record.getMessage(),
            logger_name=record.name,
            extra=extra,
        )
        return log_record.to_json()


@contextmanager
def log_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """
    Add fields to every log line emitted inside the block.
    
    Usage:
        with log_context(bucket="blocks", request_id="r-17"):
            await store.put(cid, block)
    
    Nested contexts merge; inner values win.
    """
    merged = {**_log_context.get(), **fields}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


def current_context() -> dict[str, Any]:
    """Fields of the innermost active log_context."""
    return dict(_log_context.get())


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_format: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure root logger for structured logging.
    
    Args:
        level: Minimum log level
        json_format: Use JSON formatting
        stream: Output stream (default: stderr)
    """
    root = logging.getLogger()
    root.setLevel(int(level))
    
    # Remove existing handlers
    root.handlers.clear()
    
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(int(level))
    
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        ))
    
    root.addHandler(handler)
    
    # Suppress noisy transport loggers
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
