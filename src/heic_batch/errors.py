"""Error definitions for the HEIC batch converter."""

from __future__ import annotations

import logging
import traceback
from enum import Enum
from typing import TYPE_CHECKING, Any

from .logging_config import get_logger
from .models import ItemFailure

if TYPE_CHECKING:
    from .models import ConvertedItem


class ConversionError(Exception):
    """Base exception for conversion errors."""

    pass


class DecodeError(ConversionError):
    """Raised when bytes are neither HEIC/HEIF nor a recognized raster image."""

    pass


class EncodeError(ConversionError):
    """Raised when the target encoder rejects the decoded pixels."""

    pass


class StalledConversion(ConversionError):
    """Raised when a conversion stops making progress before its deadline."""

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class OverCapacityError(ConversionError):
    """Raised when a batch exceeds the configured file cap."""

    def __init__(self, message: str, accepted: int, excluded: int) -> None:
        super().__init__(message)
        self.accepted = accepted
        self.excluded = excluded


class InvalidFileError(ConversionError):
    """Raised when an input file is invalid."""

    pass


class SecurityError(ConversionError):
    """Raised when security validation fails."""

    pass


class PipelineBusyError(ConversionError):
    """Raised when a control is used while a conversion is in flight."""

    pass


class ErrorCategory(Enum):
    """Categories of errors for classification."""

    DECODE = "decode"
    ENCODE = "encode"
    STALLED = "stalled"
    INPUT_VALIDATION = "input_validation"
    SECURITY = "security"
    CAPACITY = "capacity"
    UNKNOWN = "unknown"


class ErrorHandler:
    """Handles per-item errors with logging and user feedback.

    Provides centralized error handling for the pipeline, including error
    classification, user-friendly message generation, and logging with context.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Initialize the error handler.

        Args:
            logger: Optional logger instance. If None, creates a default logger.
        """
        self.logger = logger or get_logger(__name__)

    def handle_error(
        self,
        error: Exception,
        item: ConvertedItem,
        context: dict[str, Any] | None = None,
    ) -> ItemFailure:
        """Turn an exception raised while converting an item into a failure record.

        Strategy:
        1. Classify error type
        2. Generate user-friendly error message
        3. Log error with context (stack trace at DEBUG)
        4. Return an ItemFailure; never raise

        Args:
            error: The exception that occurred
            item: The item being converted
            context: Extra context information (e.g., operation, attempt)

        Returns:
            ItemFailure describing the error
        """
        context = dict(context or {})
        context.setdefault("item", item.source.name)

        category = self._classify_error(error)
        message = self._generate_user_message(error, category, item.source.name)
        self._log_error(error, category, context)

        if not isinstance(error, ConversionError):
            wrapped = ConversionError(str(error) or type(error).__name__)
            wrapped.__cause__ = error
            error = wrapped

        return ItemFailure(item=item, error=error, category=category, message=message)

    def _classify_error(self, error: Exception) -> ErrorCategory:
        """Classify error into category for appropriate handling.

        Args:
            error: The exception to classify

        Returns:
            ErrorCategory indicating the type of error
        """
        if isinstance(error, DecodeError):
            return ErrorCategory.DECODE
        elif isinstance(error, EncodeError):
            return ErrorCategory.ENCODE
        elif isinstance(error, StalledConversion):
            return ErrorCategory.STALLED
        elif isinstance(error, InvalidFileError):
            return ErrorCategory.INPUT_VALIDATION
        elif isinstance(error, SecurityError):
            return ErrorCategory.SECURITY
        elif isinstance(error, OverCapacityError):
            return ErrorCategory.CAPACITY
        elif isinstance(error, ConversionError):
            error_msg = str(error).lower()
            if any(keyword in error_msg for keyword in ["decode", "corrupt", "format"]):
                return ErrorCategory.DECODE
            elif "encode" in error_msg:
                return ErrorCategory.ENCODE
            return ErrorCategory.UNKNOWN
        else:
            return ErrorCategory.UNKNOWN

    def _generate_user_message(
        self, error: Exception, category: ErrorCategory, filename: str
    ) -> str:
        """Generate a clear error message for the user.

        Args:
            error: The exception that occurred
            category: The error category
            filename: Name of the source file

        Returns:
            User-friendly error message in English
        """
        base_message = str(error)

        if category == ErrorCategory.DECODE:
            return (
                f"Could not read {filename}. The file is not a valid HEIC/HEIF image "
                f"or a supported raster image."
            )
        elif category == ErrorCategory.ENCODE:
            return f"Could not encode {filename} to the requested format. {base_message}"
        elif category == ErrorCategory.STALLED:
            return f"Conversion of {filename} stopped responding and was abandoned."
        elif category == ErrorCategory.INPUT_VALIDATION:
            return f"Invalid input file: {filename}. {base_message}"
        elif category == ErrorCategory.SECURITY:
            return f"Security error: {filename}. {base_message}"
        elif category == ErrorCategory.CAPACITY:
            return base_message
        else:  # UNKNOWN
            return f"Unexpected error processing {filename}: {base_message}"

    def _log_error(
        self, error: Exception, category: ErrorCategory, context: dict[str, Any]
    ) -> None:
        """Log error with context and stack trace.

        Args:
            error: The exception that occurred
            category: The error category
            context: Context information
        """
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())

        self.logger.error(
            f"Error [{category.value}]: {type(error).__name__}: {error}",
            extra={"context": context_str},
        )

        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                f"Stack trace for error in {context.get('item', 'unknown')}:\n"
                f"{''.join(traceback.format_exception(type(error), error, error.__traceback__))}"
            )
