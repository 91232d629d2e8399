"""Unit tests for configuration handling."""

import pytest

from heic_batch.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_FILES,
    DEFAULT_QUALITY,
    DEFAULT_STALL_TIMEOUT,
    Config,
    create_config,
    get_format_from_env,
    get_quality_from_env,
)
from heic_batch.models import ImageFormat

ENV_VARS = (
    "HEIC_BATCH_QUALITY",
    "HEIC_BATCH_FORMAT",
    "HEIC_BATCH_MAX_FILES",
    "HEIC_BATCH_CHUNK_SIZE",
    "HEIC_BATCH_STALL_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestGetQualityFromEnv:
    """Tests for get_quality_from_env function."""

    def test_returns_none_when_env_var_not_set(self) -> None:
        assert get_quality_from_env() is None

    def test_returns_valid_quality_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEIC_BATCH_QUALITY", "0.75")
        assert get_quality_from_env() == 0.75

    @pytest.mark.parametrize("raw", ["-0.1", "1.5", "not_a_number", ""])
    def test_returns_none_for_invalid_values(
        self, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        monkeypatch.setenv("HEIC_BATCH_QUALITY", raw)
        assert get_quality_from_env() is None

    @pytest.mark.parametrize(("raw", "expected"), [("0", 0.0), ("1", 1.0)])
    def test_bounds_are_valid(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: float
    ) -> None:
        monkeypatch.setenv("HEIC_BATCH_QUALITY", raw)
        assert get_quality_from_env() == expected


class TestGetFormatFromEnv:
    """Tests for get_format_from_env function."""

    def test_parses_format(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEIC_BATCH_FORMAT", "WEBP")
        assert get_format_from_env() is ImageFormat.WEBP

    def test_unsupported_format_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEIC_BATCH_FORMAT", "bmp")
        assert get_format_from_env() is None


class TestCreateConfig:
    """Tests for create_config function."""

    def test_defaults(self) -> None:
        config = create_config()
        assert config.max_files == DEFAULT_MAX_FILES
        assert config.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.stall_timeout == DEFAULT_STALL_TIMEOUT
        assert config.default_quality == DEFAULT_QUALITY
        assert config.default_format is ImageFormat.JPEG

    def test_explicit_values_win_over_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEIC_BATCH_QUALITY", "0.5")
        monkeypatch.setenv("HEIC_BATCH_FORMAT", "png")
        config = create_config(quality=0.8, target_format="webp")
        assert config.default_quality == 0.8
        assert config.default_format is ImageFormat.WEBP

    def test_env_values_are_used(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEIC_BATCH_QUALITY", "0.5")
        monkeypatch.setenv("HEIC_BATCH_FORMAT", "png")
        monkeypatch.setenv("HEIC_BATCH_MAX_FILES", "10")
        monkeypatch.setenv("HEIC_BATCH_CHUNK_SIZE", "4")
        monkeypatch.setenv("HEIC_BATCH_STALL_TIMEOUT", "5.5")

        config = create_config()

        assert config.default_quality == 0.5
        assert config.default_format is ImageFormat.PNG
        assert config.max_files == 10
        assert config.chunk_size == 4
        assert config.stall_timeout == 5.5

    def test_invalid_env_values_fall_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEIC_BATCH_MAX_FILES", "0")
        monkeypatch.setenv("HEIC_BATCH_CHUNK_SIZE", "two")
        config = create_config()
        assert config.max_files == DEFAULT_MAX_FILES
        assert config.chunk_size == DEFAULT_CHUNK_SIZE

    def test_invalid_explicit_quality_falls_back(self) -> None:
        assert create_config(quality=3.0).default_quality == DEFAULT_QUALITY


class TestConfigValidation:
    """Tests for Config.__post_init__."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_files": 0},
            {"chunk_size": 0},
            {"stall_timeout": 0},
            {"stall_threshold": 0},
            {"stall_threshold": 101},
            {"max_stall_retries": -1},
            {"chunk_pause": -1},
            {"default_quality": 1.1},
        ],
    )
    def test_invalid_values_raise(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            Config(**kwargs)
