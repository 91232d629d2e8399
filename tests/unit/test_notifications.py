"""Unit tests for user-facing notifications."""

import pytest

from heic_batch import notifications
from heic_batch.models import ImageFormat
from heic_batch.notifications import ConversionTrigger, NotificationKind, format_quality


class TestConversionMessage:
    """Tests for conversion_message wording."""

    @pytest.mark.parametrize(
        ("quality", "expected"), [(0.9, "0.9"), (0.85, "0.85"), (1.0, "1"), (0.333, "0.33")]
    )
    def test_format_quality(self, quality, expected):
        assert format_quality(quality) == expected

    def test_submit_wording(self):
        message = notifications.conversion_message(
            3, ImageFormat.JPEG, 0.9, False, ConversionTrigger.SUBMIT
        )
        assert message == "Successfully converted 3 images to JPG with quality 0.9"

    def test_png_omits_quality(self):
        message = notifications.conversion_message(
            1, ImageFormat.PNG, 1.0, False, ConversionTrigger.QUALITY
        )
        assert message == "Successfully converted 1 image to PNG"

    def test_fallback_items_are_processed(self):
        message = notifications.conversion_message(
            2, ImageFormat.WEBP, 0.8, True, ConversionTrigger.FORMAT
        )
        assert message == "Successfully processed 2 images to WEBP"

    def test_quality_wording(self):
        message = notifications.conversion_message(
            2, ImageFormat.WEBP, 0.75, False, ConversionTrigger.QUALITY
        )
        assert message == "Successfully converted 2 images with quality 0.75"


class TestNotificationFactories:
    """Tests for the notification builders."""

    def test_over_capacity(self):
        notice = notifications.over_capacity(30, 5)
        assert notice.kind is NotificationKind.OVER_CAPACITY
        assert notice.message == "Only 30 files can be converted at once. 5 files excluded."
        assert notice.destructive

    def test_invalid_files_singular(self):
        notice = notifications.invalid_files(1)
        assert notice.message.startswith("1 file skipped.")

    def test_started(self):
        notice = notifications.conversion_started(4, ConversionTrigger.QUALITY)
        assert notice.title == "Converting 4 images"
        assert notice.message == "Please wait while we convert your images to the new quality"

    def test_complete_with_failures(self):
        notice = notifications.conversion_complete(
            3, 1, ImageFormat.JPEG, 0.9, False, ConversionTrigger.SUBMIT
        )
        assert notice.message.endswith("; 1 image failed")
        assert notice.title == "Conversion finished with errors"
        assert not notice.destructive

    def test_complete_all_failed(self):
        notice = notifications.conversion_complete(
            0, 2, ImageFormat.JPEG, 0.9, False, ConversionTrigger.SUBMIT
        )
        assert notice.message == "Failed to convert 2 images"
        assert notice.destructive

    def test_stall_notices_carry_item_id(self):
        assert notifications.stall_retry("abc", "a.heic").item_id == "abc"
        exhausted = notifications.stall_retry_exhausted("abc", "a.heic")
        assert exhausted.kind is NotificationKind.STALL_RETRY_EXHAUSTED
        assert exhausted.destructive
