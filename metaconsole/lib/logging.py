"""Logging utilities for the console.

Log lines carry the form-session context (form name, record key) so a
session can be followed through plain-text or JSON output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "ContextFormatter",
    "ConsoleLogger",
    "get_console_logger",
]

CONTEXT_FIELDS = ("form", "record_key")

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the session context lifted to the top.

    Example output:
        {"time": "2025-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "metaconsole.forms.session", "message": "Loaded record",
         "form": "pipeline", "record_key": 42}

    Anything else passed through ``extra=`` lands under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        data: Dict[str, Any] = {
            "time": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(_context_of(record))

        extra = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and k not in CONTEXT_FIELDS
        }
        if extra:
            data["extra"] = extra
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends the session context, if any."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        return line + " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"


class ConsoleLogger:
    """Logger that stamps every message with form-session context.

    Example:
        logger = ConsoleLogger("metaconsole.forms.session")
        logger.set_context(form="pipeline", record_key=42)
        logger.info("Cleared %d fields", 2)  # Includes context automatically
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)
        self._context: Dict[str, Any] = {}

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def set_context(self, **kwargs: Any) -> None:
        """Set context fields that will be included in all log messages."""
        self._context.update(kwargs)

    def clear_context(self) -> None:
        self._context.clear()

    def _log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        extra = kwargs.pop("extra", {})
        extra.update(self._context)
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def get_console_logger(name: str) -> ConsoleLogger:
    """Get a console logger instance.

    Args:
        name: Logger name (typically module path)

    Returns:
        ConsoleLogger instance
    """
    return ConsoleLogger(name)


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Send console logs to stderr and, optionally, a file.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.

    Args:
        verbose: Log at DEBUG, which includes discarded stale responses
        json_format: One JSON object per line instead of plain text
        log_file: Also append to this file
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter: logging.Formatter = JSONFormatter() if json_format else ContextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
