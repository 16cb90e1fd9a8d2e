"""
Logging configuration for the mailsort classifier.

Console output goes through rich; an optional log file receives one JSON
object per record. Work-item context (item id, document name) is attached
to every record emitted inside a ``LogContext`` block.
"""

import functools
import inspect
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from mailsort.config import get_settings

# Attributes every LogRecord carries; anything else came from extra= or the context filter
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "google", "googleapiclient", "google_auth_oauthlib")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, extras and context included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextFilter(logging.Filter):
    """Copy the current work-item context onto each record."""

    def __init__(self) -> None:
        super().__init__()
        self.context: Dict[str, Any] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


context_filter = ContextFilter()


def _console_handler(level: str, show_locals: bool) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=show_locals,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(context_filter)
    return handler


def _file_handler(path: Path, level: str, structured: bool) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))
    handler.addFilter(context_filter)
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_file_path: Optional[Path] = None,
    use_structured_logging: bool = True,
) -> None:
    """
    Configure root logging for the CLI.

    Args:
        log_level: Level name; defaults to LOG_LEVEL
        log_file_path: Optional log file; defaults to LOG_FILE_PATH
        use_structured_logging: Write JSON lines to the log file
    """
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    path = log_file_path or settings.get_log_file_path()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(_console_handler(level, settings.dev_mode))
    if path:
        root.addHandler(_file_handler(path, level, use_structured_logging))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging at {level}" + (f", file {path}" if path else ""))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Temporarily add key/value context to every log record.

    Nested blocks override outer values and the outer state is restored on
    exit.
    """

    def __init__(self, **values: Any) -> None:
        self.values = values
        self._saved: Dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._saved = dict(context_filter.context)
        context_filter.context.update(self.values)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        context_filter.context.clear()
        context_filter.context.update(self._saved)


def log_performance(func):
    """
    Log how long a call took, at DEBUG on success and ERROR on failure.

    Works on both coroutine functions and plain functions.
    """
    logger = get_logger(func.__module__)

    def _report(started: float, error: Optional[BaseException]) -> None:
        elapsed = time.monotonic() - started
        if error is None:
            logger.debug(f"{func.__qualname__} took {elapsed:.2f}s", extra={"duration_seconds": elapsed})
        else:
            logger.error(
                f"{func.__qualname__} failed after {elapsed:.2f}s: {error}",
                extra={"duration_seconds": elapsed},
            )

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            started = time.monotonic()
            with LogContext(function=func.__name__):
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _report(started, e)
                    raise
                _report(started, None)
                return result

        return async_wrapper

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        started = time.monotonic()
        with LogContext(function=func.__name__):
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(started, e)
                raise
            _report(started, None)
            return result

    return sync_wrapper
