"""Unit tests for display name handling."""

import pytest

from heic_batch.naming import FALLBACK_BASE_NAME, sanitize_base_name, validate_file_name


class TestSanitizeBaseName:
    """Tests for sanitize_base_name."""

    def test_keeps_plain_names(self):
        assert sanitize_base_name("My Photo") == "My Photo"

    @pytest.mark.parametrize("name", ['a<b>c', 'a:b"c', "a/b\\c", "a|b?c*"])
    def test_strips_forbidden_characters(self, name):
        assert sanitize_base_name(name) == "abc"

    @pytest.mark.parametrize("name", ["", "   ", "???", "<>"])
    def test_empty_result_falls_back(self, name):
        assert sanitize_base_name(name) == FALLBACK_BASE_NAME


class TestValidateFileName:
    """Tests for validate_file_name."""

    def test_appends_extension(self):
        assert validate_file_name("My Photo", "webp") == "My Photo.webp"

    def test_fallback_with_extension(self):
        assert validate_file_name("", "jpg") == "image.jpg"
