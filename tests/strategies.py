"""Custom Hypothesis strategies and image builders for tests."""

import io

import numpy as np
import pillow_heif
from hypothesis import strategies as st
from PIL import Image

from heic_batch.models import ImageFormat


def encode_image(array, fmt="JPEG", **save_kwargs):
    """Encode a numpy pixel array with Pillow.

    Args:
        array: uint8 array of shape (height, width, 3) or (height, width, 4)
        fmt: Pillow format name
        **save_kwargs: Extra encoder options

    Returns:
        Encoded bytes
    """
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def encode_heic(array, quality=90):
    """Encode a numpy RGB array as HEIC.

    Returns:
        HEIC bytes, or None if no HEVC encoder is available on this platform
    """
    try:
        heif_file = pillow_heif.from_pillow(Image.fromarray(array))
        buffer = io.BytesIO()
        heif_file.save(buffer, quality=quality)
    except Exception:
        return None
    return buffer.getvalue()


def noise_image(width=64, height=48, seed=0):
    """Build a deterministic noisy RGB image that compresses poorly."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


@st.composite
def random_images(draw, min_width=8, max_width=96, min_height=8, max_height=96):
    """Generate random RGB images as numpy arrays.

    Args:
        draw: Hypothesis draw function
        min_width: Minimum image width
        max_width: Maximum image width
        min_height: Minimum image height
        max_height: Maximum image height

    Returns:
        numpy array of shape (height, width, 3) with uint8 RGB values
    """
    width = draw(st.integers(min_value=min_width, max_value=max_width))
    height = draw(st.integers(min_value=min_height, max_value=max_height))
    seed = draw(st.integers(min_value=0, max_value=2**32 - 1))
    return noise_image(width, height, seed)


@st.composite
def quality_values(draw):
    """Generate valid quality values (0-1)."""
    return draw(st.floats(min_value=0.0, max_value=1.0, allow_nan=False))


@st.composite
def invalid_quality_values(draw):
    """Generate invalid quality values (outside 0-1)."""
    return draw(
        st.one_of(
            st.floats(max_value=-0.001, allow_nan=False, allow_infinity=False),
            st.floats(min_value=1.001, max_value=100.0),
        )
    )


def target_formats():
    """Generate supported target formats."""
    return st.sampled_from(list(ImageFormat))


@st.composite
def progress_sequences(draw, max_size=40):
    """Generate arbitrary, possibly decreasing, progress reports."""
    return draw(st.lists(st.integers(min_value=-20, max_value=150), max_size=max_size))
