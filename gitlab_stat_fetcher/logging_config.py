"""
Logging setup for the stat fetcher.

Text output is the default; ``--log-json`` (or LOG_FORMAT=json) switches to
one JSON object per line for unattended runs. HTTP timings attached by the
client as ``extra={"status_code": ..., "duration_ms": ...}`` appear in both.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

PACKAGE_LOGGER = "gitlab_stat_fetcher"

# Record attributes the client may attach through ``extra``
RECORD_EXTRAS = ("status_code", "duration_ms")


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in RECORD_EXTRAS if hasattr(record, name)}


class StructuredFormatter(logging.Formatter):
    """JSON lines formatter."""

    def __init__(self, static_fields: dict[str, Any] | None = None):
        super().__init__()
        self.static_fields = static_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            **self.static_fields,
            **_record_extras(record),
        }
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """
    ``HH:MM:SS LEVEL logger: message [status=..., duration=...ms]``

    Level names are colored only when stdout is a terminal.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def _level(self, levelname: str) -> str:
        padded = f"{levelname:8}"
        if not self.use_colors:
            return padded
        return f"{self.LEVEL_COLORS.get(levelname, '')}{padded}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")
        message = record.getMessage()

        extras = _record_extras(record)
        if extras:
            parts = []
            if "status_code" in extras:
                parts.append(f"status={extras['status_code']}")
            if "duration_ms" in extras:
                parts.append(f"duration={extras['duration_ms']}ms")
            message = f"{message} [{', '.join(parts)}]"

        line = f"{clock} {self._level(record.levelname)} {record.name}: {message}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    log_file: str | None = None,
) -> logging.Logger:
    """
    Configure the root logger. Safe to call more than once; previous
    handlers are replaced.

    Args:
        level: Logging level for console, file and package logger
        json_format: Emit JSON lines instead of text
        log_file: Also write log records to this file

    Returns:
        The gitlab_stat_fetcher package logger
    """
    if json_format:
        formatter: logging.Formatter = StructuredFormatter({"service": "gitlab-stat-fetcher"})
    else:
        formatter = HumanReadableFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root.addHandler(handler)
    root.setLevel(level)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    return logger
