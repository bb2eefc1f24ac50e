"""Structured logging for the signal scanner.

Console output plus rotating log files (main, error, debug, api) in JSON or
text form. Records may carry a structured ``data`` payload and are tagged
with the correlation ID of the scan pass or request they belong to.
"""

import asyncio
import contextlib
import contextvars
import functools
import json
import logging
import logging.handlers
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from .time_utils import get_utc_now
from .config import LoggingConfig


API_LOGGER_NAME = "scanner.api"
TEXT_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# log_performance stays quiet for calls faster than this
SLOW_CALL_MS = 10.0

# Correlation ID for request tracing, one per asyncio task context
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)

# LogRecord attributes that are not user-supplied extras
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "data", "taskName"
}


def generate_correlation_id() -> str:
    """Short random ID for tagging related log lines."""
    return uuid.uuid4().hex[:8]


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


@contextlib.contextmanager
def correlation_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Tag every record logged inside the block with one correlation ID.

    Args:
        correlation_id: ID to use (generated if None)

    Yields:
        The active correlation ID
    """
    token = _correlation_id.set(correlation_id or generate_correlation_id())
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    FIELD_GETTERS: Dict[str, Callable[[logging.LogRecord], Any]] = {
        "timestamp": lambda record: get_utc_now().isoformat(),
        "level": lambda record: record.levelname,
        "module": lambda record: record.name,
        "message": lambda record: record.getMessage(),
        "correlation_id": lambda record: get_correlation_id(),
        "data": lambda record: getattr(record, "data", None),
    }

    def __init__(self, include_fields: List[str]):
        super().__init__()
        self.include_fields = [f for f in include_fields if f in self.FIELD_GETTERS]

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {}

        for name in self.include_fields:
            value = self.FIELD_GETTERS[name](record)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        )

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Single-line text with correlation ID and trailing data payload."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)

        correlation_id = get_correlation_id()
        if correlation_id:
            prefix = f"{record.name}: "
            line = line.replace(prefix, f"{prefix}[{correlation_id}] ", 1)

        data = getattr(record, "data", None)
        if data:
            line = f"{line} | Data: {json.dumps(data, ensure_ascii=False, default=str)}"

        return line


def create_file_handler(
    log_file: Union[str, Path],
    level: str,
    formatter: logging.Formatter,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 10
) -> logging.Handler:
    """Rotating file handler; parent directories are created as needed."""
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level.upper())
    handler.setFormatter(formatter)
    return handler


def create_console_handler(level: str, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level.upper())
    handler.setFormatter(formatter)
    return handler


def _make_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format == "json":
        return StructuredFormatter(config.include_fields)
    return TextFormatter()


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root and API loggers from the logging section.

    Args:
        config: Logging configuration (global config when None)
    """
    if config is None:
        from .config import get_config
        config = get_config().logging

    level = config.level.upper()
    max_bytes = config.max_file_size_mb * 1024 * 1024

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(create_console_handler(level, _make_formatter(config)))

    # (file, handler level); debug file only when running at DEBUG
    root_files = [
        (config.files.main, level),
        (config.files.error, "ERROR"),
        (config.files.debug if level == "DEBUG" else None, "DEBUG"),
    ]
    for log_file, file_level in root_files:
        if log_file:
            root.addHandler(create_file_handler(
                log_file, file_level, _make_formatter(config), max_bytes, config.backup_count
            ))

    # API traffic goes to its own file only
    if config.files.api:
        api_logger = logging.getLogger(API_LOGGER_NAME)
        api_logger.handlers.clear()
        api_logger.addHandler(create_file_handler(
            config.files.api, level, _make_formatter(config), max_bytes, config.backup_count
        ))
        api_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class ScannerLogger:
    """Logger wrapper accepting a structured ``data`` payload on every call."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, data: Optional[Dict[str, Any]], extra: Dict[str, Any]) -> None:
        if data:
            extra = {**extra, "data": data}
        self.logger.log(level, message, extra=extra, stacklevel=3)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log(logging.DEBUG, message, data, kwargs)

    def info(self, message: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log(logging.INFO, message, data, kwargs)

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log(logging.WARNING, message, data, kwargs)

    def error(self, message: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log(logging.ERROR, message, data, kwargs)

    def critical(self, message: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log(logging.CRITICAL, message, data, kwargs)

    def api_call(self, endpoint: str, method: str = "GET", data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        """Record an API request or response on the API logger.

        Args:
            endpoint: API endpoint path
            method: HTTP method
            data: Request or response details
        """
        payload = {"endpoint": endpoint, "method": method, "timestamp": get_utc_now().isoformat()}
        payload.update(data or {})
        logging.getLogger(API_LOGGER_NAME).info(
            f"API {method} {endpoint}", extra={**kwargs, "data": payload}
        )


def get_scanner_logger(name: str) -> ScannerLogger:
    return ScannerLogger(name)


def get_api_logger() -> ScannerLogger:
    return ScannerLogger(API_LOGGER_NAME)


@contextlib.contextmanager
def _timed(func: Callable) -> Iterator[None]:
    """Report the duration or failure of one call of ``func``."""
    logger = get_scanner_logger(f"performance.{func.__module__}.{func.__qualname__}")
    details = {"function": func.__qualname__, "module": func.__module__}
    started = time.perf_counter()

    try:
        yield
    except Exception as e:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.error(
            f"Function {func.__qualname__} failed",
            data={**details, "duration_ms": round(elapsed_ms, 2), "status": "error", "error": str(e)}
        )
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > SLOW_CALL_MS:
        logger.debug(
            f"Function {func.__qualname__} completed",
            data={**details, "duration_ms": round(elapsed_ms, 2), "status": "success"}
        )


def log_performance(func):
    """Time plain and coroutine functions while the root logger is at DEBUG."""

    def enabled() -> bool:
        return logging.getLogger().isEnabledFor(logging.DEBUG)

    if asyncio.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            if not enabled():
                return await func(*args, **kwargs)
            with _timed(func):
                return await func(*args, **kwargs)

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not enabled():
            return func(*args, **kwargs)
        with _timed(func):
            return func(*args, **kwargs)

    return wrapper
