"""Unit tests for file system operations."""

from pathlib import Path

import pytest

from heic_batch.errors import InvalidFileError, SecurityError
from heic_batch.filesystem import FileSystemHandler
from heic_batch.models import Artifact, ConvertedItem, ImageFormat, SourceItem


@pytest.fixture
def filesystem():
    return FileSystemHandler()


def converted(name: str, data: bytes = b"converted", fmt=ImageFormat.JPEG) -> ConvertedItem:
    item = ConvertedItem.from_source(SourceItem(name, b"original"), fmt)
    item.artifact = Artifact(data, fmt, 1, 1)
    return item


class TestReadSource:
    """Tests for FileSystemHandler.read_source."""

    def test_reads_bytes_and_guesses_mime(self, filesystem, tmp_path):
        path = tmp_path / "IMG_0001.heic"
        path.write_bytes(b"heic-bytes")

        source = filesystem.read_source(path)

        assert source.name == "IMG_0001.heic"
        assert source.data == b"heic-bytes"
        assert source.mime_type == "image/heic"

    def test_missing_file(self, filesystem, tmp_path):
        with pytest.raises(InvalidFileError, match="File not found"):
            filesystem.read_source(tmp_path / "missing.heic")

    def test_directory_is_rejected(self, filesystem, tmp_path):
        with pytest.raises(InvalidFileError, match="not a file"):
            filesystem.read_source(tmp_path)

    def test_path_traversal_is_rejected(self, filesystem):
        with pytest.raises(SecurityError):
            filesystem.read_source(Path("..") / "secret.heic")

    def test_too_large_file(self, tmp_path):
        path = tmp_path / "big.heic"
        path.write_bytes(b"x" * 11)
        handler = FileSystemHandler()
        handler.MAX_FILE_SIZE = 10

        with pytest.raises(InvalidFileError, match="File too large"):
            handler.read_source(path)


class TestSaveArtifacts:
    """Tests for saving converted artifacts."""

    def test_save_artifact_uses_display_name(self, filesystem, tmp_path):
        item = converted("IMG_0001.heic")

        path = filesystem.save_artifact(item, tmp_path / "out")

        assert path.name == "IMG_0001.jpg"
        assert path.read_bytes() == b"converted"
        assert not list((tmp_path / "out").glob("*.tmp"))

    def test_item_without_artifact_raises(self, filesystem, tmp_path):
        item = ConvertedItem.from_source(SourceItem("a.heic", b"x"), ImageFormat.JPEG)
        with pytest.raises(InvalidFileError, match="no converted image"):
            filesystem.save_artifact(item, tmp_path)

    def test_save_all_avoids_collisions(self, filesystem, tmp_path):
        """Test that two items with the same display name get distinct files."""
        first = converted("photo.heic", b"one")
        second = converted("photo.HEIC", b"two")

        paths = filesystem.save_all([first, second], tmp_path)

        assert len(set(paths)) == 2
        assert paths[0].name == "photo.jpg"
        assert paths[1].name.startswith("photo_") and paths[1].suffix == ".jpg"
        assert {p.read_bytes() for p in paths} == {b"one", b"two"}

    def test_save_all_skips_items_without_artifact(self, filesystem, tmp_path):
        pending = ConvertedItem.from_source(SourceItem("a.heic", b"x"), ImageFormat.PNG)
        paths = filesystem.save_all([pending, converted("b.heic", fmt=ImageFormat.PNG)], tmp_path)
        assert [p.name for p in paths] == ["b.png"]

    def test_output_traversal_is_rejected(self, filesystem):
        with pytest.raises(SecurityError):
            filesystem.save_artifact(converted("a.heic"), Path("out") / ".." / "..")
