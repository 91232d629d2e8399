"""Persisted user preferences: last-used format and per-format quality."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from heic_batch.logging_config import get_logger
from heic_batch.models import PNG_QUALITY, ImageFormat

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)


@dataclass
class Preferences:
    """Target settings remembered across sessions.

    Attributes:
        format: Last-used target format
        qualities: Last-used quality per format (0-1)
    """

    format: ImageFormat
    qualities: dict[ImageFormat, float] = field(default_factory=dict)

    @classmethod
    def defaults(cls, target_format: ImageFormat, quality: float) -> Preferences:
        return cls(
            format=target_format,
            qualities={
                fmt: PNG_QUALITY if fmt is ImageFormat.PNG else quality for fmt in ImageFormat
            },
        )

    def quality_for(self, target_format: ImageFormat, default: float) -> float:
        if target_format is ImageFormat.PNG:
            return PNG_QUALITY
        return self.qualities.get(target_format, default)

    def copy(self) -> Preferences:
        return Preferences(self.format, dict(self.qualities))

    def to_dict(self) -> dict[str, object]:
        return {
            "format": self.format.value,
            "qualities": {fmt.value: quality for fmt, quality in self.qualities.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Preferences:
        """Build preferences from stored data, dropping invalid entries.

        Raises:
            ValueError: If the stored format is missing or unsupported
        """
        target_format = ImageFormat.parse(str(data.get("format", "")))
        qualities: dict[ImageFormat, float] = {}
        raw_qualities = data.get("qualities")
        if isinstance(raw_qualities, dict):
            for name, value in raw_qualities.items():
                try:
                    fmt = ImageFormat.parse(name)
                    quality = float(value)
                except (TypeError, ValueError):
                    continue
                if 0.0 <= quality <= 1.0:
                    qualities[fmt] = quality
        return cls(format=target_format, qualities=qualities)


class PreferencesStore(Protocol):
    """Port through which the controller loads and saves preferences."""

    def load(self) -> Preferences | None: ...

    def save(self, preferences: Preferences) -> None: ...


class InMemoryPreferencesStore:
    """Preferences kept for the lifetime of the process only."""

    def __init__(self, preferences: Preferences | None = None) -> None:
        self._preferences = preferences

    def load(self) -> Preferences | None:
        if self._preferences is None:
            return None
        return self._preferences.copy()

    def save(self, preferences: Preferences) -> None:
        self._preferences = preferences.copy()


class JsonPreferencesStore:
    """Preferences stored in a small JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Preferences | None:
        """Read preferences; a missing or unreadable file yields None."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed preferences file {self.path}")
            return None
        try:
            return Preferences.from_dict(data)
        except ValueError as e:
            logger.warning(f"Ignoring preferences in {self.path}: {e}")
            return None

    def save(self, preferences: Preferences) -> None:
        """Write preferences, logging rather than raising on I/O errors."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(preferences.to_dict(), f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to save preferences to {self.path}: {e}")
