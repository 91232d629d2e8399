"""User-facing notifications emitted by the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from heic_batch.models import ImageFormat


class NotificationKind(Enum):
    """Events the presentation layer is told about."""

    OVER_CAPACITY = "over_capacity"
    INVALID_FILES = "invalid_files"
    CONVERSION_STARTED = "conversion_started"
    CONVERSION_COMPLETE = "conversion_complete"
    ITEM_FAILED = "item_failed"
    STALL_RETRY = "stall_retry"
    STALL_RETRY_EXHAUSTED = "stall_retry_exhausted"


class ConversionTrigger(Enum):
    """What caused a conversion pass."""

    SUBMIT = "submit"
    FORMAT = "format"
    QUALITY = "quality"


@dataclass(frozen=True)
class Notification:
    """A message for the user.

    Attributes:
        kind: Event type
        title: Short headline
        message: Full description
        destructive: Whether the UI should present it as an error
        succeeded: Items converted, for completion notices
        failed: Items that failed, for completion notices
        excluded: Files rejected at submission
        item_id: Item the notice refers to, if any
    """

    kind: NotificationKind
    title: str
    message: str
    destructive: bool = False
    succeeded: int = 0
    failed: int = 0
    excluded: int = 0
    item_id: str | None = None


def format_quality(quality: float) -> str:
    """Format a 0-1 quality with at most two decimals and no trailing zeros."""
    return f"{round(quality, 2):.2f}".rstrip("0").rstrip(".")


def _plural(count: int) -> str:
    return "s" if count != 1 else ""


def conversion_message(
    count: int,
    target_format: ImageFormat,
    quality: float,
    includes_non_heic: bool,
    trigger: ConversionTrigger,
) -> str:
    """Describe a finished conversion pass."""
    action = "processed" if includes_non_heic else "converted"
    subject = f"{count} image{_plural(count)}"
    label = target_format.value.upper()

    if target_format is ImageFormat.PNG:
        return f"Successfully {action} {subject} to PNG"
    if trigger is ConversionTrigger.FORMAT:
        return f"Successfully {action} {subject} to {label}"
    if trigger is ConversionTrigger.QUALITY:
        return f"Successfully {action} {subject} with quality {format_quality(quality)}"
    return f"Successfully {action} {subject} to {label} with quality {format_quality(quality)}"


def conversion_start_message(trigger: ConversionTrigger) -> str:
    if trigger is ConversionTrigger.FORMAT:
        return "Please wait while we convert your images to the new format"
    if trigger is ConversionTrigger.QUALITY:
        return "Please wait while we convert your images to the new quality"
    return "Please wait while we convert your images"


def over_capacity(max_files: int, excluded: int) -> Notification:
    return Notification(
        kind=NotificationKind.OVER_CAPACITY,
        title="Too many files",
        message=(
            f"Only {max_files} files can be converted at once. "
            f"{excluded} file{_plural(excluded)} excluded."
        ),
        destructive=True,
        excluded=excluded,
    )


def invalid_files(excluded: int) -> Notification:
    return Notification(
        kind=NotificationKind.INVALID_FILES,
        title="Invalid files",
        message=(
            f"{excluded} file{_plural(excluded)} skipped. "
            f"Please select HEIC or HEIF images only."
        ),
        destructive=True,
        excluded=excluded,
    )


def conversion_started(count: int, trigger: ConversionTrigger) -> Notification:
    return Notification(
        kind=NotificationKind.CONVERSION_STARTED,
        title=f"Converting {count} image{_plural(count)}",
        message=conversion_start_message(trigger),
    )


def conversion_complete(
    succeeded: int,
    failed: int,
    target_format: ImageFormat,
    quality: float,
    includes_non_heic: bool,
    trigger: ConversionTrigger,
) -> Notification:
    if succeeded == 0 and failed > 0:
        message = f"Failed to convert {failed} image{_plural(failed)}"
    else:
        message = conversion_message(
            succeeded, target_format, quality, includes_non_heic, trigger
        )
        if failed:
            message += f"; {failed} image{_plural(failed)} failed"
    return Notification(
        kind=NotificationKind.CONVERSION_COMPLETE,
        title="Conversion complete" if not failed else "Conversion finished with errors",
        message=message,
        destructive=failed > 0 and succeeded == 0,
        succeeded=succeeded,
        failed=failed,
    )


def item_failed(item_id: str, name: str, reason: str) -> Notification:
    return Notification(
        kind=NotificationKind.ITEM_FAILED,
        title=f"Could not convert {name}",
        message=reason,
        destructive=True,
        item_id=item_id,
    )


def stall_retry(item_id: str, name: str) -> Notification:
    return Notification(
        kind=NotificationKind.STALL_RETRY,
        title="Conversion stuck",
        message=f"Conversion of {name} stopped responding. Retrying...",
        item_id=item_id,
    )


def stall_retry_exhausted(item_id: str, name: str) -> Notification:
    return Notification(
        kind=NotificationKind.STALL_RETRY_EXHAUSTED,
        title="Conversion failed",
        message=f"Conversion of {name} stopped responding again and was abandoned.",
        destructive=True,
        item_id=item_id,
    )
