"""Logging configuration for the HEIC batch converter.

All modules log under the ``heic_batch`` namespace. The pipeline itself never
configures handlers; the CLI (or any other host) calls :func:`setup_logging`.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

LOGGER_NAMESPACE = "heic_batch"

STANDARD_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(batch)s] %(message)s"


class PlatformIndependentFormatter(logging.Formatter):
    """Formatter that normalizes line endings to LF on every platform."""

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return formatted.replace("\r\n", "\n").replace("\r", "\n")


class BatchContextFilter(logging.Filter):
    """Attach the current batch label to every record.

    The verbose format references ``%(batch)s``; records emitted outside a
    batch get ``-`` so formatting never fails.
    """

    def __init__(self) -> None:
        super().__init__()
        self.batch_label = "-"

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "batch"):
            record.batch = self.batch_label
        return True


_context_filter = BatchContextFilter()


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure the ``heic_batch`` logger.

    Args:
        level: Base logging level (default: INFO)
        verbose: Enable verbose logging (sets level to DEBUG)
        log_file: Optional path to a log file

    Returns:
        Configured logger for the heic_batch package
    """
    effective_level = logging.DEBUG if verbose else level

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(effective_level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = PlatformIndependentFormatter(
        VERBOSE_FORMAT if verbose else STANDARD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Progress bars own stdout, so log records go to stderr.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(effective_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(effective_level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(_context_filter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {e}")

    logger.debug(
        f"Logging configured: level={logging.getLevelName(effective_level)}, "
        f"verbose={verbose}, log_file={log_file}"
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``heic_batch`` namespace.

    Args:
        name: Name of the module (typically __name__)
    """
    if not name.startswith(LOGGER_NAMESPACE):
        name = f"{LOGGER_NAMESPACE}.{name}"
    return logging.getLogger(name)


def set_batch_label(label: str | None) -> None:
    """Set the batch label injected into verbose log records."""
    _context_filter.batch_label = label or "-"


def set_log_level(level: int | str) -> None:
    """Change the logging level of the package logger and its handlers.

    Args:
        level: New level, as an int or a name such as 'DEBUG'

    Raises:
        ValueError: If the level name is invalid
    """
    logger = logging.getLogger(LOGGER_NAMESPACE)

    if isinstance(level, str):
        numeric_level = getattr(logging, level.upper(), None)
        if not isinstance(numeric_level, int):
            raise ValueError(f"Invalid log level: {level}")
        level = numeric_level

    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def _format_context(context: dict[str, object]) -> str:
    return ", ".join(f"{k}={v}" for k, v in context.items())


def log_operation_start(logger: logging.Logger, operation: str, **context: object) -> None:
    """Log the start of an operation, e.g. ``batch run`` or ``reconversion``."""
    logger.info(f"Starting {operation}: {_format_context(context)}")


def log_operation_complete(
    logger: logging.Logger,
    operation: str,
    success: bool,
    duration: float | None = None,
    **context: object,
) -> None:
    """Log the completion of an operation at INFO, or ERROR when it failed."""
    status = "completed successfully" if success else "failed"
    timing = f" in {duration:.2f}s" if duration is not None else ""
    message = f"{operation.capitalize()} {status}{timing}: {_format_context(context)}"

    if success:
        logger.info(message)
    else:
        logger.error(message)


def log_operation_error(
    logger: logging.Logger, operation: str, error: BaseException, **context: object
) -> None:
    """Log an operation error, with the stack trace at DEBUG."""
    logger.error(
        f"Error during {operation}: {type(error).__name__}: {error} - {_format_context(context)}"
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Stack trace for {operation} error:", exc_info=error)
