"""Pytest configuration and shared fixtures."""

import logging

import pytest

from heic_batch.models import SourceItem
from tests.fakes import FakeTranscoder
from tests.strategies import encode_heic, encode_image, noise_image


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handler and propagation changes made by setup_logging."""
    yield
    logger = logging.getLogger("heic_batch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fast_config():
    """Provide a configuration with no artificial delays."""
    from heic_batch.config import Config

    return Config(
        stall_timeout=0.2,
        progress_estimate_seconds=0.0,
        chunk_pause=0.0,
    )


@pytest.fixture
def make_transcoder():
    """Build FakeTranscoder instances."""
    return FakeTranscoder


@pytest.fixture
def make_sources():
    """Build HEIC-named sources with distinct payloads."""

    def _make(count, prefix="photo"):
        return [
            SourceItem(name=f"{prefix}{index}.heic", data=f"payload-{index}".encode())
            for index in range(1, count + 1)
        ]

    return _make


@pytest.fixture
def jpeg_bytes():
    """Provide a small JPEG image."""
    return encode_image(noise_image(32, 24), "JPEG", quality=90)


@pytest.fixture
def png_rgba_bytes():
    """Provide a fully transparent RGBA PNG image."""
    import numpy as np

    return encode_image(np.zeros((16, 16, 4), dtype=np.uint8), "PNG")


@pytest.fixture
def heic_bytes():
    """Provide a real HEIC image, skipping when no encoder is available."""
    data = encode_heic(noise_image(32, 24))
    if data is None:
        pytest.skip("HEIC encoding is not available on this platform")
    return data
