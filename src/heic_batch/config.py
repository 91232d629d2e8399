"""Configuration handling for the HEIC batch converter."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TypeVar

from .models import ImageFormat

T = TypeVar("T", int, float)

DEFAULT_MAX_FILES = 30
DEFAULT_CHUNK_SIZE = 2
DEFAULT_STALL_TIMEOUT = 20.0
DEFAULT_STALL_THRESHOLD = 90
DEFAULT_QUALITY = 0.9


@dataclass
class Config:
    """Configuration for the conversion pipeline.

    Attributes:
        max_files: Maximum number of items in a batch
        chunk_size: Number of items transcoded concurrently
        stall_timeout: Seconds an attempt may run before stall detection applies
        stall_threshold: Progress an attempt must exceed by the deadline (0-100)
        max_stall_retries: Fresh attempts granted to a stalled item
        progress_estimate_seconds: Duration of the estimated decode progress ramp
        chunk_pause: Seconds yielded to the event loop between chunks
        default_format: Target format used when no preference is stored
        default_quality: Lossy quality used when no preference is stored (0-1)
        verbose: Enable verbose logging
    """

    max_files: int = DEFAULT_MAX_FILES
    chunk_size: int = DEFAULT_CHUNK_SIZE
    stall_timeout: float = DEFAULT_STALL_TIMEOUT
    stall_threshold: int = DEFAULT_STALL_THRESHOLD
    max_stall_retries: int = 1
    progress_estimate_seconds: float = 2.0
    chunk_pause: float = 0.05
    default_format: ImageFormat = ImageFormat.JPEG
    default_quality: float = DEFAULT_QUALITY
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_files < 1:
            raise ValueError(f"max_files must be at least 1, got {self.max_files}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if self.stall_timeout <= 0:
            raise ValueError(f"stall_timeout must be positive, got {self.stall_timeout}")
        if not 0 < self.stall_threshold <= 100:
            raise ValueError(
                f"stall_threshold must be between 1 and 100, got {self.stall_threshold}"
            )
        if self.max_stall_retries < 0:
            raise ValueError(
                f"max_stall_retries must not be negative, got {self.max_stall_retries}"
            )
        if self.progress_estimate_seconds < 0 or self.chunk_pause < 0:
            raise ValueError("progress_estimate_seconds and chunk_pause must not be negative")
        if not 0.0 <= self.default_quality <= 1.0:
            raise ValueError(
                f"default_quality must be between 0 and 1, got {self.default_quality}"
            )


def _number_from_env(name: str, kind: type[T], minimum: T, maximum: T | None = None) -> T | None:
    """Read a bounded number from the environment.

    Returns None if the variable is unset, unparsable or out of range, so the
    caller falls back to its default.
    """
    raw = os.getenv(name)
    if raw is None:
        return None

    try:
        value = kind(raw)
    except ValueError:
        return None

    if value < minimum or (maximum is not None and value > maximum):
        return None
    return value


def get_quality_from_env() -> float | None:
    """Get the lossy quality from HEIC_BATCH_QUALITY (0.0-1.0).

    Returns:
        Quality value if valid, None otherwise
    """
    return _number_from_env("HEIC_BATCH_QUALITY", float, 0.0, 1.0)


def get_format_from_env() -> ImageFormat | None:
    """Get the target format from HEIC_BATCH_FORMAT.

    Returns:
        ImageFormat if the variable names a supported format, None otherwise
    """
    raw = os.getenv("HEIC_BATCH_FORMAT")
    if raw is None:
        return None
    try:
        return ImageFormat.parse(raw)
    except ValueError:
        return None


def create_config(
    quality: float | None = None,
    target_format: ImageFormat | str | None = None,
    max_files: int | None = None,
    chunk_size: int | None = None,
    stall_timeout: float | None = None,
    verbose: bool = False,
) -> Config:
    """Create a Config with environment variable fallbacks.

    Each setting is resolved in priority order:
    1. Explicit parameter (if provided and valid)
    2. HEIC_BATCH_* environment variable (if set and valid)
    3. Built-in default

    Args:
        quality: Lossy quality (0-1)
        target_format: Default target format
        max_files: Batch cap
        chunk_size: Concurrent transcodes per chunk
        stall_timeout: Stall deadline in seconds
        verbose: Enable verbose logging

    Returns:
        Config object
    """
    if quality is None or not 0.0 <= quality <= 1.0:
        env_quality = get_quality_from_env()
        quality = env_quality if env_quality is not None else DEFAULT_QUALITY

    if target_format is None:
        resolved_format = get_format_from_env() or ImageFormat.JPEG
    else:
        resolved_format = ImageFormat.parse(target_format)

    if max_files is None or max_files < 1:
        max_files = _number_from_env("HEIC_BATCH_MAX_FILES", int, 1) or DEFAULT_MAX_FILES

    if chunk_size is None or chunk_size < 1:
        chunk_size = _number_from_env("HEIC_BATCH_CHUNK_SIZE", int, 1) or DEFAULT_CHUNK_SIZE

    if stall_timeout is None or stall_timeout <= 0:
        stall_timeout = (
            _number_from_env("HEIC_BATCH_STALL_TIMEOUT", float, 0.001) or DEFAULT_STALL_TIMEOUT
        )

    return Config(
        max_files=max_files,
        chunk_size=chunk_size,
        stall_timeout=stall_timeout,
        default_format=resolved_format,
        default_quality=quality,
        verbose=verbose,
    )
