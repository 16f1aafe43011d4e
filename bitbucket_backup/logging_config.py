"""
Logging Configuration — Structured logging setup.

Provides consistent logging across all modules with:
- Human-readable, timestamped output for operators (default)
- JSON output for log shippers
- A SUCCESS level between INFO and WARNING

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from bitbucket_backup.logging_config import setup_logging, log_success

    setup_logging()  # Call once at startup
    log_success(logger, "Cloned alpha")
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

# Operators grep for these tags
LEVEL_TAGS = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "SUCCESS",
    "WARNING": "WARN",
    "ERROR": "ERROR",
    "CRITICAL": "ERROR",
}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {"ts": "...", "level": "...", "logger": "...", "message": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": LEVEL_TAGS.get(record.levelname, record.levelname),
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "repository"):
            log_entry["repository"] = record.repository

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanFormatter(logging.Formatter):
    """
    Human-readable log formatter.

    Output format:
    2026-01-31 12:34:56 [INFO] Message
    """

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[34m",     # Blue
        "SUCCESS": "\033[32m",  # Green
        "WARN": "\033[33m",     # Yellow
        "ERROR": "\033[31m",    # Red
    }
    RESET = "\033[0m"

    def __init__(self, colorize: bool | None = None):
        super().__init__()
        self.colorize = sys.stderr.isatty() if colorize is None else colorize

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        tag = LEVEL_TAGS.get(record.levelname, record.levelname)
        if self.colorize:
            level = f"{self.COLORS.get(tag, '')}[{tag}]{self.RESET}"
        else:
            level = f"[{tag}]"

        msg = f"[{time_str}] {level} {record.getMessage()}"
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        return msg


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
               Defaults to LOG_LEVEL env var or INFO.
        format_type: Output format (json, text).
                     Defaults to LOG_FORMAT env var or text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        numeric_level = SUCCESS if log_level == "SUCCESS" else logging.INFO

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(numeric_level)
    root.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level}, format={log_format}"
    )


def log_success(logger: logging.Logger, message: str) -> None:
    """Log a message at the SUCCESS level."""
    logger.log(SUCCESS, message)
