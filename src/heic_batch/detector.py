"""Container signature detection for submitted files."""

from __future__ import annotations

from pathlib import PurePath

from heic_batch.models import SIGNATURE_LENGTH, DetectionResult

HEIC_EXTENSIONS = frozenset({".heic", ".heif"})
HEIC_MIME_TYPES = frozenset({"image/heic", "image/heif"})

# ISO-BMFF major brands of the HEIF family. mif1/msf1 are the generic
# still-image and sequence brands and are reported as image/heif.
HEIC_BRANDS = frozenset({"heic", "heix", "hevc", "hevx", "heim", "heis", "hevm", "hevs"})
HEIF_BRANDS = frozenset({"mif1", "msf1"})

UNKNOWN = DetectionResult(is_expected_container=False, actual_mime=None)


class FormatDetector:
    """Identify a file's true type from its leading bytes."""

    def detect(self, prefix: bytes) -> DetectionResult:
        """Inspect the container signature.

        Only the first 12 bytes are examined. Unrecognized or truncated input
        yields a structured unknown result instead of an error.

        Args:
            prefix: Leading bytes of the file (longer input is truncated)

        Returns:
            DetectionResult for the signature
        """
        head = bytes(prefix[:SIGNATURE_LENGTH])

        if len(head) >= 12 and head[4:8] == b"ftyp":
            brand = head[8:12].decode("latin-1").lower()
            if brand in HEIC_BRANDS:
                return DetectionResult(True, "image/heic", brand)
            if brand in HEIF_BRANDS:
                return DetectionResult(True, "image/heif", brand)
            return UNKNOWN

        if head.startswith(b"\xff\xd8\xff"):
            return DetectionResult(False, "image/jpeg")
        if head.startswith(b"\x89PNG\r\n\x1a\n"):
            return DetectionResult(False, "image/png")
        if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WEBP":
            return DetectionResult(False, "image/webp")
        if head[:6] in (b"GIF87a", b"GIF89a"):
            return DetectionResult(False, "image/gif")
        if head[:4] in (b"II*\x00", b"MM\x00*"):
            return DetectionResult(False, "image/tiff")

        return UNKNOWN


def looks_like_heic_name(name: str) -> bool:
    """Whether a file name carries a .heic/.heif extension."""
    return PurePath(name).suffix.lower() in HEIC_EXTENSIONS


def is_heic_candidate(name: str, mime_type: str | None, detection: DetectionResult) -> bool:
    """Decide whether a submitted file may enter the pipeline.

    A file is accepted when its name or reported mime type says HEIC/HEIF, or
    when its bytes carry a HEIF-family signature. Misnamed rasters therefore
    still enter and are recovered by the transcoder's fallback path.
    """
    if detection.is_expected_container:
        return True
    if mime_type and mime_type.lower() in HEIC_MIME_TYPES:
        return True
    return looks_like_heic_name(name)
