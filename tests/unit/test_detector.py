"""Unit tests for container signature detection."""

import pytest

from heic_batch.detector import FormatDetector, is_heic_candidate, looks_like_heic_name
from heic_batch.models import DetectionResult


def ftyp(brand: bytes) -> bytes:
    return b"\x00\x00\x00\x18ftyp" + brand + b"\x00\x00\x00\x00"


class TestFormatDetector:
    """Tests for FormatDetector.detect."""

    @pytest.fixture
    def detector(self):
        return FormatDetector()

    @pytest.mark.parametrize(
        "brand", [b"heic", b"heix", b"hevc", b"hevx", b"heim", b"heis", b"hevm", b"hevs"]
    )
    def test_heic_brands(self, detector, brand):
        """Test that HEVC brands are detected as image/heic."""
        result = detector.detect(ftyp(brand))
        assert result.is_expected_container is True
        assert result.actual_mime == "image/heic"
        assert result.brand == brand.decode()

    @pytest.mark.parametrize("brand", [b"mif1", b"msf1"])
    def test_generic_heif_brands(self, detector, brand):
        """Test that generic brands are detected as image/heif."""
        result = detector.detect(ftyp(brand))
        assert result.is_expected_container is True
        assert result.actual_mime == "image/heif"

    def test_other_ftyp_brand_is_unknown(self, detector):
        """Test that non-HEIF ISO-BMFF files (e.g. MP4) are not accepted."""
        result = detector.detect(ftyp(b"isom"))
        assert result == DetectionResult(False, None)

    @pytest.mark.parametrize(
        ("prefix", "mime"),
        [
            (b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01", "image/jpeg"),
            (b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0d", "image/png"),
            (b"RIFF\x24\x00\x00\x00WEBP", "image/webp"),
            (b"GIF89a\x01\x00\x01\x00\x00\x00", "image/gif"),
            (b"II*\x00\x08\x00\x00\x00\x00\x00\x00\x00", "image/tiff"),
        ],
    )
    def test_fallback_rasters(self, detector, prefix, mime):
        """Test that common raster formats are recognized."""
        result = detector.detect(prefix)
        assert result.is_expected_container is False
        assert result.actual_mime == mime
        assert result.is_known_raster

    @pytest.mark.parametrize("prefix", [b"", b"\x00", b"\x00\x00\x00\x18ftyp", b"hello world!"])
    def test_short_or_unknown_input(self, detector, prefix):
        """Test that truncated or unknown input yields an unknown result."""
        result = detector.detect(prefix)
        assert result.is_expected_container is False
        assert result.actual_mime is None

    def test_only_first_twelve_bytes_are_used(self, detector):
        """Test that trailing bytes do not influence detection."""
        assert detector.detect(ftyp(b"heic") + b"garbage" * 10).actual_mime == "image/heic"


class TestHeicCandidate:
    """Tests for submission screening."""

    def test_heic_extension(self):
        assert looks_like_heic_name("IMG_0001.HEIC")
        assert looks_like_heic_name("photo.heif")
        assert not looks_like_heic_name("photo.jpg")

    def test_signature_wins_over_name(self):
        """Test that HEIC bytes under a wrong name are accepted."""
        detection = DetectionResult(True, "image/heic", "heic")
        assert is_heic_candidate("photo.jpg", None, detection)

    def test_reported_mime_type(self):
        assert is_heic_candidate("upload", "image/HEIF", DetectionResult(False, None))

    def test_misnamed_raster_is_accepted(self):
        """Test that a JPEG named .heic enters the pipeline for fallback decoding."""
        assert is_heic_candidate("photo.heic", None, DetectionResult(False, "image/jpeg"))

    def test_plain_raster_is_rejected(self):
        assert not is_heic_candidate("photo.png", "image/png", DetectionResult(False, "image/png"))
