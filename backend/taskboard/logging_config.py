"""
Logging configuration for Taskboard.

Provides structured logging with:
- Console output with color coding
- Optional JSON format for production (TASKBOARD_LOG_JSON=true)
- Log levels configurable via environment
- Context fields (operation, task ids, actor) carried through ``extra=``
"""

import json
import logging
import sys
from typing import Optional

from taskboard.config import get_settings


# Keys passed through ``logger.xxx(..., extra={...})`` that formatters render
CONTEXT_FIELDS = ("operation", "task_id", "depends_on_task_id", "dependency_id", "actor_id")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


# ANSI color codes for terminal output
class Colors:
    GREY = "\x1b[38;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"
    GREEN = "\x1b[32;20m"


def _context_suffix(record: logging.LogRecord) -> str:
    pairs = [
        f"{key}={getattr(record, key)}"
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    ]
    return f" [{' '.join(pairs)}]" if pairs else ""


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors by level and appends context fields."""

    COLORS = {
        logging.DEBUG: Colors.GREY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD_RED,
    }

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record):
        color = self.COLORS.get(record.levelno, Colors.GREY)
        return color + super().format(record) + _context_suffix(record) + Colors.RESET


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to
            TASKBOARD_LOG_LEVEL, then DEBUG when debug is on, else INFO.
        json_format: If True, use JSON format. Defaults to TASKBOARD_LOG_JSON.
    """
    settings = get_settings()

    log_level = level or settings.log_level or ("DEBUG" if settings.debug else "INFO")
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    if json_format is None:
        json_format = settings.log_json

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(JsonFormatter() if json_format else ColoredFormatter())
    root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("firebase_admin").setLevel(logging.WARNING)

    logging.getLogger("taskboard").setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Usage:
        from taskboard.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Dependency added", extra={"task_id": 1})

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger under the ``taskboard`` namespace
    """
    if not name.startswith("taskboard"):
        name = f"taskboard.{name}"
    return logging.getLogger(name)
