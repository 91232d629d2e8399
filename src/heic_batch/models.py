"""Core data models for the HEIC batch converter."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from heic_batch.errors import ConversionError, ErrorCategory

# PNG is lossless, so its quality is pinned and not user-adjustable.
PNG_QUALITY = 1.0

SIGNATURE_LENGTH = 12


class ImageFormat(Enum):
    """Target raster formats supported by the pipeline."""

    JPEG = "jpg"
    PNG = "png"
    WEBP = "webp"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def mime_type(self) -> str:
        return {
            ImageFormat.JPEG: "image/jpeg",
            ImageFormat.PNG: "image/png",
            ImageFormat.WEBP: "image/webp",
        }[self]

    @property
    def pillow_format(self) -> str:
        return {
            ImageFormat.JPEG: "JPEG",
            ImageFormat.PNG: "PNG",
            ImageFormat.WEBP: "WEBP",
        }[self]

    @property
    def is_lossy(self) -> bool:
        return self is not ImageFormat.PNG

    @classmethod
    def parse(cls, value: str | ImageFormat) -> ImageFormat:
        """Parse a user-supplied format name.

        Args:
            value: Format name (jpg, jpeg, png, webp) or an ImageFormat

        Returns:
            The matching ImageFormat

        Raises:
            ValueError: If the format is not supported
        """
        if isinstance(value, ImageFormat):
            return value
        normalized = str(value).strip().lower().lstrip(".")
        if normalized == "jpeg":
            normalized = "jpg"
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(f.value for f in cls)
            raise ValueError(
                f"Unsupported target format: {value!r}. Expected one of {supported}"
            ) from None


@dataclass(frozen=True)
class ConversionTarget:
    """Requested output format and quality.

    Attributes:
        format: Target raster format
        quality: Encoder quality in the range 0.0 to 1.0
    """

    format: ImageFormat
    quality: float

    def __post_init__(self) -> None:
        """Validate the target after initialization."""
        if not isinstance(self.format, ImageFormat):
            raise ValueError(f"format must be an ImageFormat, got {self.format!r}")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"Quality must be between 0 and 1, got {self.quality}")

    def normalized(self) -> ConversionTarget:
        """Return the target with PNG quality pinned to the fixed constant."""
        if self.format is ImageFormat.PNG and self.quality != PNG_QUALITY:
            return ConversionTarget(ImageFormat.PNG, PNG_QUALITY)
        return self

    @property
    def pillow_quality(self) -> int:
        """Quality on Pillow's 0-100 integer scale."""
        return int(round(self.quality * 100))


@dataclass(frozen=True)
class DetectionResult:
    """Result of sniffing a file's container signature.

    Attributes:
        is_expected_container: True when the bytes carry a HEIC/HEIF signature
        actual_mime: Best-guess mime type, or None when unrecognized
        brand: ISO-BMFF major brand for HEIF-family files
    """

    is_expected_container: bool
    actual_mime: str | None
    brand: str | None = None

    @property
    def is_known_raster(self) -> bool:
        """Whether the bytes are a recognized non-HEIC raster format."""
        return not self.is_expected_container and self.actual_mime is not None


@dataclass(frozen=True)
class SourceItem:
    """Immutable source file contents supplied by the caller.

    Attributes:
        name: Original file name
        data: Raw file bytes
        mime_type: Optional mime type reported by the caller
    """

    name: str
    data: bytes = field(repr=False)
    mime_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    def prefix(self, length: int = SIGNATURE_LENGTH) -> bytes:
        return self.data[:length]


@dataclass(frozen=True)
class Artifact:
    """Binary output of one transcode.

    Attributes:
        data: Encoded image bytes
        format: Format the bytes are encoded in
        width: Image width in pixels
        height: Image height in pixels
        via_fallback: True when produced by the generic raster path
    """

    data: bytes = field(repr=False)
    format: ImageFormat
    width: int
    height: int
    via_fallback: bool = False

    @property
    def mime_type(self) -> str:
        return self.format.mime_type

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PreviewHandle:
    """Revocable reference a renderer uses to display an artifact."""

    uri: str
    item_id: str
    artifact: Artifact = field(repr=False)
    revoked: bool = False


class AttemptState(Enum):
    """Lifecycle of one item's conversion attempt."""

    PENDING = "pending"
    RUNNING = "running"
    STALLED = "stalled"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.COMPLETED, AttemptState.FAILED)


def _new_item_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class ConvertedItem:
    """One batch entry as seen by the caller.

    Attributes:
        source: Original source the item is always converted from
        base_name: File name without extension (source stem or user rename)
        extension: Extension of the current target format
        detection: Container signature detected at submission
        artifact: Current derived artifact, None until conversion completes
        preview_handle: Live handle for the current artifact
        progress: Progress of the current attempt (0-100)
        state: State of the current attempt
        renamed: Whether the user has renamed the item
        id: Opaque identifier, stable for the item's lifetime
    """

    source: SourceItem
    base_name: str
    extension: str
    detection: DetectionResult | None = None
    artifact: Artifact | None = None
    preview_handle: PreviewHandle | None = None
    progress: int = 0
    state: AttemptState = AttemptState.PENDING
    renamed: bool = False
    id: str = field(default_factory=_new_item_id)

    @classmethod
    def from_source(
        cls,
        source: SourceItem,
        target_format: ImageFormat,
        detection: DetectionResult | None = None,
    ) -> ConvertedItem:
        path = PurePath(source.name)
        stem = path.stem
        # ".heic" parses as a stem with no suffix; it is an extension only.
        if stem.startswith(".") and not path.suffix:
            stem = ""
        return cls(
            source=source,
            base_name=stem or "image",
            extension=target_format.extension,
            detection=detection,
        )

    @property
    def display_name(self) -> str:
        return f"{self.base_name}.{self.extension}"

    def begin_attempt(self) -> None:
        """Reset progress for a fresh attempt; the artifact is superseded."""
        self.artifact = None
        self.progress = 0
        self.state = AttemptState.PENDING


@dataclass
class ItemFailure:
    """A per-item failure collected by the batch scheduler.

    Attributes:
        item: Item that failed
        error: Error raised while converting it
        category: Error classification
        message: User-facing error message
    """

    item: ConvertedItem
    error: ConversionError
    category: ErrorCategory
    message: str


@dataclass
class BatchOutcome:
    """Settled results of one scheduler run.

    Attributes:
        completed: Items converted successfully
        failed: Items that failed, with reasons
        total_time: Wall-clock duration of the run in seconds
    """

    completed: list[ConvertedItem] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)
    total_time: float = 0.0

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.failed)

    @property
    def succeeded(self) -> int:
        return len(self.completed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def success_rate(self) -> float:
        """Calculate success rate as percentage.

        Returns:
            Success rate as a percentage (0.0 to 100.0)
        """
        if self.total == 0:
            return 0.0
        return (self.succeeded / self.total) * 100.0


@dataclass(frozen=True)
class ItemView:
    """Per-item snapshot exposed to the presentation layer."""

    id: str
    display_name: str
    preview_handle: str | None
    progress: int
    artifact: Artifact | None
    renamed: bool = False


@dataclass(frozen=True)
class AggregateState:
    """Batch-level snapshot exposed to the presentation layer."""

    is_converting: bool
    aggregate_progress: int
    total_count: int
    completed_count: int
