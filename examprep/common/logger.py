"""
Application Logger

This module provides the logging setup shared by every part of the service.
Handlers are attached once to the ``examprep`` logger; modules obtain children
of it with ``app_logger.getChild(...)`` so a single LOG_LEVEL controls them all.

Structured fields can be attached to records through ``LoggerAdapter`` (or the
``with_context`` shortcut) and are emitted as top-level keys by ``JsonFormatter``.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
import asyncio
from typing import Dict, Any, Optional, Union, Callable, TypeVar

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
APP_LOGGER_NAME = "examprep"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'configure_logger',
    'LoggerAdapter',
    'JsonFormatter',
    'with_context',
    'app_logger',
    'log_execution_time'
]


class JsonFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON line.

    Context attached under the ``data`` extra (see ``LoggerAdapter``) is merged
    into the top level of the emitted object.
    """

    def __init__(self, datefmt: Optional[str] = None, *, indent: Optional[int] = None):
        super().__init__(datefmt=datefmt)
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        log_object: Dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno
        }

        if record.exc_info:
            log_object["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        data = getattr(record, "data", None)
        if isinstance(data, dict):
            log_object.update(data)

        return json.dumps(log_object, indent=self.indent, default=str)


def configure_logger(
    name: str = APP_LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    format_string: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    use_json: bool = False,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure a logger with console and optional file handlers.

    Existing handlers are replaced, so calling this again (for example after the
    settings have been loaded) reconfigures the logger in place.

    Args:
        name: Logger name
        level: Log level name or number
        format_string: Log format string for the plain-text formatter
        date_format: Date format string
        use_json: Whether to emit JSON lines instead of plain text
        log_file: Path to a log file (no file handler when None)
        console_output: Whether to log to stdout

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    if use_json:
        formatter: logging.Formatter = JsonFormatter(date_format)
    else:
        formatter = logging.Formatter(format_string, date_format)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except (FileNotFoundError, PermissionError) as e:
            logger.warning(f"Could not create log file {log_file}: {e}")

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches a fixed context to every record.

    The context ends up under the ``data`` extra, which ``JsonFormatter``
    flattens into the JSON output.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs = dict(kwargs)
        extra = dict(kwargs.get('extra') or {})
        data = dict(extra.get('data') or {})
        data.update(self.extra)
        extra['data'] = data
        kwargs['extra'] = extra
        return msg, kwargs

    def with_context(self, **context) -> 'LoggerAdapter':
        """Return a new adapter with ``context`` merged into the current one."""
        new_context = dict(self.extra)
        new_context.update(context)
        return LoggerAdapter(self.logger, new_context)


def with_context(logger: Optional[logging.Logger] = None, **context) -> LoggerAdapter:
    """
    Create a logger adapter carrying ``context``.

    Args:
        logger: Logger to wrap (defaults to the application logger)
        context: Fields to attach to every record

    Returns:
        Logger adapter with context
    """
    return LoggerAdapter(logger or app_logger, context)


def get_app_logger() -> logging.Logger:
    """
    Get the application logger, configuring it from the environment on first use.

    Returns:
        The application logger
    """
    logger = logging.getLogger(APP_LOGGER_NAME)

    if not logger.handlers:
        return configure_logger(
            name=APP_LOGGER_NAME,
            level=os.environ.get("LOG_LEVEL", "INFO"),
            use_json=os.environ.get("LOG_JSON", "false").lower() == "true",
            log_file=os.environ.get("LOG_FILE"),
            console_output=True
        )

    return logger


app_logger = get_app_logger()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Decorator logging how long the wrapped function (sync or async) took.

    Args:
        logger: Logger to use, defaults to the application logger

    Returns:
        Decorator
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                (logger or app_logger).debug(
                    f"{func.__name__} finished in {time.perf_counter() - start_time:.3f}s"
                )

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                (logger or app_logger).debug(
                    f"{func.__name__} finished in {time.perf_counter() - start_time:.3f}s"
                )

        return async_wrapper if asyncio.iscoroutinefunction(func) else wrapper
    return decorator
