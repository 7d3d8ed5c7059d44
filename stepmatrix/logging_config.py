"""Structured logging for the StepMatrix engine.

Every engine module logs under the ``stepmatrix`` namespace. Public
operations are wrapped with :func:`traced`, which records the input shape
on entry and the elapsed time on exit; those records carry an
``operation`` attribute that :class:`StructuredFormatter` appends.
"""

import functools
import logging
import sys
import time
from datetime import datetime
from typing import Optional

from stepmatrix import config

ROOT_LOGGER = "stepmatrix"


class StructuredFormatter(logging.Formatter):
    """``<timestamp> [LEVEL] name: message``, plus the operation and traceback when present."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds")
        line = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"
        operation = getattr(record, "operation", None)
        if operation:
            line = f"{line} (operation={operation})"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: Optional[str] = None, log_file: Optional[str] = None
) -> logging.Logger:
    """Set up structured logging for the engine.

    Args:
        level: Logging level name; defaults to ``config.LOG_LEVEL``
        log_file: Optional file that receives a copy of every record;
            defaults to ``config.LOG_FILE``

    Returns:
        The ``stepmatrix`` namespace logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, (level or config.LOG_LEVEL).upper(), logging.WARNING))

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = StructuredFormatter()
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or config.LOG_FILE
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for an engine module, e.g. ``get_logger("systems")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _shape(matrix) -> str:
    shape = getattr(matrix, "shape", None)
    if shape is not None and len(shape) == 2:
        return f"{shape[0]}×{shape[1]}"
    try:
        return f"{len(matrix)}×{len(matrix[0])}"
    except (TypeError, IndexError, KeyError):
        return "?"


def traced(operation: str):
    """Decorate a public operation taking a matrix first.

    Logs the operation at DEBUG with the shape of that matrix, then the
    elapsed time once it returns. Exceptions propagate untouched.
    """
    def decorator(func):
        logger = get_logger(func.__module__.rsplit(".", 1)[-1])

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            matrix = args[0] if args else next(iter(kwargs.values()), None)
            extra = {"operation": operation}
            logger.debug("Start on a %s matrix", _shape(matrix), extra=extra)
            started = time.perf_counter()
            result = func(*args, **kwargs)
            logger.debug(
                "Done in %.2f ms", (time.perf_counter() - started) * 1000, extra=extra
            )
            return result

        return wrapper

    return decorator
