"""
Application Logger

Every module logs through a child of ``app_logger``. Request handlers wrap
their logger with ``with_context`` so each line names the learner, quiz or
lesson it concerns; with JSON output enabled that context becomes fields of
the record.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
from typing import Dict, Any, Optional, Union, Callable, TypeVar

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Root name for every logger in the package
APP_LOGGER_NAME = "progression"

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
    """One JSON object per record, with adapter context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_object = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        log_object.update(getattr(record, 'context', None) or {})

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)


def configure_logger(
    level: Union[str, int] = logging.INFO,
    use_json: bool = False,
    log_file: Optional[str] = None,
    name: str = APP_LOGGER_NAME
) -> logging.Logger:
    """
    (Re)configure the package logger.

    Handlers from a previous call are replaced, so this is safe to call
    again once settings are loaded.

    Args:
        level: Log level name or number
        use_json: Emit JsonFormatter records instead of plain lines
        log_file: Also append to this file when given
        name: Logger to configure

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    formatter = JsonFormatter() if use_json else logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Stamps each message with ``key=value`` context and attaches it to the record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        if not self.extra:
            return msg, kwargs

        extra = dict(kwargs.get('extra') or {})
        extra['context'] = dict(self.extra)
        kwargs = {**kwargs, 'extra': extra}
        context_str = " ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"{msg} [{context_str}]", kwargs


def with_context(logger: Optional[logging.Logger] = None, **context) -> LoggerAdapter:
    """
    Wrap a logger so every message carries ``context``.

    Args:
        logger: Logger to wrap (defaults to the application logger)
        context: Fields such as ``learner_id`` or ``quiz_id``

    Returns:
        Logger adapter with context
    """
    return LoggerAdapter(logger or app_logger, context)


def _bootstrap_logger() -> logging.Logger:
    """Configure the package logger from the environment unless already done."""
    logger = logging.getLogger(APP_LOGGER_NAME)
    if logger.handlers:
        return logger
    return configure_logger(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        use_json=os.environ.get("LOG_JSON", "false").lower() == "true",
        log_file=os.environ.get("LOG_FILE"),
    )


app_logger = _bootstrap_logger()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Decorator logging how long a coroutine took, or how long it ran before failing.

    Args:
        logger: Logger to use (defaults to app_logger)
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                (logger or app_logger).error(
                    f"{func.__name__} failed after {time.perf_counter() - start_time:.3f} seconds: {e}"
                )
                raise
            (logger or app_logger).debug(
                f"{func.__name__} executed in {time.perf_counter() - start_time:.3f} seconds"
            )
            return result

        return wrapper
    return decorator
