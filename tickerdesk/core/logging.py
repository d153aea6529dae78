"""Structured logging configuration with per-agent context tracking."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Context variable naming the agent that emitted a record
agent_name_var: ContextVar[Optional[str]] = ContextVar("agent_name", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def __init__(self, include_location: bool = False):
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        agent = agent_name_var.get()
        if agent:
            log_data["agent"] = agent

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_location:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for the operator's terminal."""

    def format(self, record: logging.LogRecord) -> str:
        agent = agent_name_var.get()
        tag = f"[{agent}] " if agent else ""
        timestamp = datetime.now().strftime("%H:%M:%S")
        base = f"{timestamp} {record.levelname:8} {tag}{record.name}: {record.getMessage()}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class SensitiveDataFilter(logging.Filter):
    """Redact API credentials that end up in URLs or headers."""

    SENSITIVE_KEYS = {
        "apikey",
        "api_key",
        "apca-api-key-id",
        "apca-api-secret-key",
        "secret",
        "token",
    }

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage().lower()
        for key in self.SENSITIVE_KEYS:
            if key in message:
                record.msg = self._redact_value(record.getMessage(), key)
                record.args = None
        return True

    def _redact_value(self, text: str, key: str) -> str:
        """Redact values after sensitive keys."""
        patterns = [
            rf"({re.escape(key)}\s*[=:]\s*)[^\s,&}}\]]+",
            rf"('{re.escape(key)}'\s*:\s*)[^\s,}}\]]+",
            rf'("{re.escape(key)}"\s*:\s*)[^\s,}}\]]+',
        ]
        for pattern in patterns:
            text = re.sub(pattern, r"\1[REDACTED]", text, flags=re.IGNORECASE)
        return text


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure process-wide logging for one agent."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level))

    if fmt == "json":
        handler.setFormatter(StructuredFormatter(include_location=level == "DEBUG"))
    else:
        handler.setFormatter(TextFormatter())

    handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the tickerdesk prefix."""
    return logging.getLogger(f"tickerdesk.{name}")
