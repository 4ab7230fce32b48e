"""
Observability module: Structured logging.
"""

from blockmesh.observability.logging import (
    JsonFormatter,
    LogLevel,
    current_context,
    log_context,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "current_context",
    "log_context",
    "setup_logging",
]
