"""
Logging configuration for the game manager.

Console output goes to stderr, with colored level names on a TTY. The
``--log-file`` option of the command line adds a rotating file that
records everything down to DEBUG, as plain text or, with ``--json-logs``,
one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Union

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d] %(message)s"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

#: Loggers of libraries that are too chatty below WARNING.
QUIET_LOGGERS = ("urllib3", "py7zr")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the LogContext fields under "data"."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        context = getattr(record, "extra_data", None)
        if context:
            entry["data"] = context
        return json.dumps(entry, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        record.levelname = f"{self.COLORS.get(record.levelno, '')}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # Other handlers share the record
            record.levelname = levelname


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    formatter_class = ColoredFormatter if sys.stderr.isatty() else logging.Formatter
    handler.setFormatter(formatter_class(CONSOLE_FORMAT))
    return handler


def _file_handler(path: Path, json_logs: bool) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JSONFormatter() if json_logs else logging.Formatter(FILE_FORMAT))
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_logs: bool = False,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: Console logging level
        log_file: Rotating log file, written at DEBUG level (optional)
        json_logs: Write the log file as JSON lines
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(level))

    if log_file:
        root.addHandler(_file_handler(Path(log_file), json_logs))
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class LogContext:
    """
    Attach fields to every record created inside the block.

    Example:
        with LogContext(game="galaxy", repository="official"):
            logger.info("Installing")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._previous = None

    def __enter__(self):
        self._previous = previous = logging.getLogRecordFactory()
        fields = self.fields

        def record_factory(*args, **kwargs):
            record = previous(*args, **kwargs)
            record.extra_data = fields
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, *exc_info):
        logging.setLogRecordFactory(self._previous)
