"""Single-item transcoder: HEIC/HEIF to JPEG, PNG or WEBP."""

from __future__ import annotations

import asyncio
import io
from time import perf_counter
from typing import TYPE_CHECKING, Any

import numpy as np
import pillow_heif
from PIL import Image

from heic_batch.config import Config
from heic_batch.detector import FormatDetector
from heic_batch.errors import DecodeError, EncodeError
from heic_batch.logging_config import get_logger
from heic_batch.models import PNG_QUALITY, Artifact, ConversionTarget, ImageFormat

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from numpy.typing import NDArray

    from heic_batch.models import DetectionResult, SourceItem

# Estimated progress milestones. Everything before completion stays below the
# default stall threshold (90) so a hung decode or encode is detectable.
RAMP_START = 5
RAMP_END = 80
DECODED = 85
INTERMEDIATE_ENCODED = 88
COMPLETE = 100

WHITE = 255.0


class ProgressReporter:
    """Forward non-decreasing integer progress values to a callback."""

    def __init__(self, callback: Callable[[int], None] | None = None) -> None:
        self._callback = callback
        self.value = -1

    def report(self, value: float) -> None:
        clamped = max(0, min(COMPLETE, int(value)))
        if clamped <= self.value:
            return
        self.value = clamped
        if self._callback is not None:
            self._callback(clamped)

    async def ramp(self, start: int, end: int, duration: float, steps: int = 20) -> None:
        """Interpolate from start to end over duration seconds.

        Decoders expose no byte-level progress, so intermediate values are
        estimates. The ramp is cancelled as soon as the real step finishes.
        """
        self.report(start)
        if duration <= 0:
            return
        interval = duration / steps
        increment = (end - start) / steps
        for step in range(1, steps + 1):
            await asyncio.sleep(interval)
            self.report(start + increment * step)


class ImageTranscoder:
    """Decode one source file and re-encode it to the requested target.

    HEIC/HEIF data is decoded with pillow-heif and encoded directly to JPEG or
    PNG. WEBP goes through a PNG intermediate whose pixels are re-encoded. Data
    that turns out not to be HEIC is decoded through Pillow's generic path into
    a pixel buffer and re-encoded, recovering misnamed files.
    """

    def __init__(
        self,
        config: Config | None = None,
        logger: logging.Logger | None = None,
        detector: FormatDetector | None = None,
    ):
        """Initialize with configuration.

        Args:
            config: Pipeline configuration (progress estimate duration)
            logger: Optional logger instance
            detector: Optional format detector
        """
        self.config = config or Config()
        self.logger = logger or get_logger(__name__)
        self.detector = detector or FormatDetector()
        # Register HEIF opener with Pillow
        pillow_heif.register_heif_opener()

    async def transcode(
        self,
        source: SourceItem,
        target: ConversionTarget,
        on_progress: Callable[[int], None] | None = None,
        detection: DetectionResult | None = None,
    ) -> Artifact:
        """Convert one source to the target format.

        Args:
            source: Source file to convert
            target: Requested format and quality
            on_progress: Receives non-decreasing values, 0 first and 100 on success
            detection: Signature already read for this source, if any

        Returns:
            Artifact with the encoded bytes

        Raises:
            DecodeError: If the bytes are neither HEIC/HEIF nor a readable raster image
            EncodeError: If the target encoder rejects the pixels
        """
        start_time = perf_counter()
        target = target.normalized()
        reporter = ProgressReporter(on_progress)
        reporter.report(0)

        if detection is None:
            detection = self.detector.detect(source.prefix())
        ramp = asyncio.create_task(
            reporter.ramp(RAMP_START, RAMP_END, self.config.progress_estimate_seconds)
        )

        try:
            via_fallback = detection.is_known_raster
            image: Image.Image | None = None

            if not via_fallback:
                try:
                    image = await asyncio.to_thread(self._decode_heic, source.data)
                except DecodeError as e:
                    self.logger.warning(
                        f"{source.name} could not be decoded as HEIC ({e}); "
                        f"retrying as a standard raster image"
                    )
                    via_fallback = True
            else:
                self.logger.debug(
                    f"{source.name} is {detection.actual_mime}, skipping HEIC decode"
                )

            if image is None:
                pixels = await asyncio.to_thread(self._rasterize, source.data)
                image = Image.fromarray(pixels)
        finally:
            ramp.cancel()
            await asyncio.gather(ramp, return_exceptions=True)

        reporter.report(DECODED)

        # Each encode worker closes the image it was handed, so a cancelled
        # attempt never closes an image that a thread is still encoding.
        width, height = image.size
        if target.format is ImageFormat.WEBP and not via_fallback:
            intermediate = ConversionTarget(ImageFormat.PNG, PNG_QUALITY)
            png_bytes = await asyncio.to_thread(self._encode_and_close, image, intermediate)
            reporter.report(INTERMEDIATE_ENCODED)
            pixels = await asyncio.to_thread(self._rasterize, png_bytes)
            image = Image.fromarray(pixels)

        encoded = await asyncio.to_thread(self._encode_and_close, image, target)

        reporter.report(COMPLETE)
        self.logger.debug(
            f"Transcoded {source.name} -> {target.format.value} "
            f"({len(encoded)} bytes, fallback={via_fallback}) "
            f"in {perf_counter() - start_time:.2f}s"
        )

        return Artifact(
            data=encoded,
            format=target.format,
            width=width,
            height=height,
            via_fallback=via_fallback,
        )

    def _decode_heic(self, data: bytes) -> Image.Image:
        """Decode HEIC/HEIF bytes.

        Args:
            data: Raw file bytes

        Returns:
            Decoded Pillow image

        Raises:
            DecodeError: If the bytes are not a decodable HEIC/HEIF container
        """
        try:
            heif_file = pillow_heif.open_heif(io.BytesIO(data), convert_hdr_to_8bit=True)
            return heif_file.to_pillow()
        except Exception as e:
            raise DecodeError(f"Failed to decode HEIC data: {e}") from e

    def _rasterize(self, data: bytes) -> NDArray[np.uint8]:
        """Decode any Pillow-readable image into an RGBA pixel buffer.

        Args:
            data: Encoded image bytes

        Returns:
            RGBA array of shape (height, width, 4)

        Raises:
            DecodeError: If Pillow cannot identify or decode the bytes
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                rgba = img.convert("RGBA")
            return np.array(rgba, dtype=np.uint8)
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Failed to decode image data: {e}") from e

    def _flatten_alpha(self, image: Image.Image) -> Image.Image:
        """Composite transparent pixels onto white for formats without alpha."""
        rgba = np.asarray(image.convert("RGBA"), dtype=np.float32)
        alpha = rgba[:, :, 3:4] / 255.0
        rgb = rgba[:, :, :3] * alpha + WHITE * (1.0 - alpha)
        return Image.fromarray(np.clip(np.rint(rgb), 0, 255).astype(np.uint8))

    def _encode_and_close(self, image: Image.Image, target: ConversionTarget) -> bytes:
        """Encode the image, then release it on the same worker thread."""
        try:
            return self._encode(image, target)
        finally:
            image.close()

    def _encode(self, image: Image.Image, target: ConversionTarget) -> bytes:
        """Encode pixels in the target format.

        Args:
            image: Decoded image
            target: Format and quality to encode with

        Returns:
            Encoded bytes

        Raises:
            EncodeError: If encoding fails
        """
        try:
            save_kwargs: dict[str, Any] = {"format": target.format.pillow_format}

            if target.format is ImageFormat.JPEG:
                if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
                    image = self._flatten_alpha(image)
                elif image.mode != "RGB":
                    image = image.convert("RGB")
                save_kwargs.update(quality=target.pillow_quality, optimize=True)
            elif target.format is ImageFormat.WEBP:
                if image.mode not in ("RGB", "RGBA"):
                    image = image.convert("RGBA")
                save_kwargs.update(quality=target.pillow_quality, method=4)
            elif image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
                image = image.convert("RGBA")

            buffer = io.BytesIO()
            image.save(buffer, **save_kwargs)
            return buffer.getvalue()

        except Exception as e:
            raise EncodeError(f"Failed to encode {target.format.pillow_format}: {e}") from e
