"""File system operations with security validation for the HEIC batch converter."""

from __future__ import annotations

import contextlib
import mimetypes
import os
from hashlib import blake2s
from typing import TYPE_CHECKING

from .errors import InvalidFileError, SecurityError
from .logging_config import get_logger
from .models import SourceItem

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable
    from pathlib import Path

    from .models import ConvertedItem

mimetypes.add_type("image/heic", ".heic")
mimetypes.add_type("image/heif", ".heif")


class FileSystemHandler:
    """Read source files and save converted artifacts.

    This class provides secure file operations including:
    - Path traversal prevention
    - File size validation
    - Atomic writes of artifacts
    - Collision-free output names within a batch
    """

    # Maximum file size: 500MB
    MAX_FILE_SIZE = 500 * 1024 * 1024

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_logger(__name__)

    def validate_input_file(self, path: Path) -> None:
        """Validate that an input file exists, is readable and is not too large.

        The content type is not checked here; the pipeline screens files by
        name, mime type and signature.

        Raises:
            SecurityError: If the path contains a traversal
            InvalidFileError: If the file is missing, unreadable or too large
        """
        if ".." in path.parts:
            raise SecurityError("Path traversal detected: path contains '..'")

        try:
            resolved_path = path.resolve(strict=False)
        except (OSError, RuntimeError) as e:
            raise InvalidFileError(f"Invalid path: {e}") from e

        if not resolved_path.exists():
            raise InvalidFileError(f"File not found: {path}")
        if not resolved_path.is_file():
            raise InvalidFileError(f"Path is not a file: {path}")
        if not os.access(resolved_path, os.R_OK):
            raise InvalidFileError(f"File is not readable: {path}")

        try:
            file_size = resolved_path.stat().st_size
        except OSError as e:
            raise InvalidFileError(f"Cannot read file size: {e}") from e
        if file_size > self.MAX_FILE_SIZE:
            max_mb = self.MAX_FILE_SIZE / (1024 * 1024)
            actual_mb = file_size / (1024 * 1024)
            raise InvalidFileError(
                f"File too large: {actual_mb:.1f}MB (maximum: {max_mb:.0f}MB)"
            )

    def read_source(self, path: Path) -> SourceItem:
        """Read a file into an immutable source item.

        Args:
            path: Path to the file selected by the user

        Returns:
            SourceItem holding the original bytes and a guessed mime type

        Raises:
            InvalidFileError: If file validation or reading fails
            SecurityError: If security checks fail
        """
        self.validate_input_file(path)
        try:
            data = path.resolve().read_bytes()
        except OSError as e:
            raise InvalidFileError(f"Failed to read file {path}: {e}") from e

        mime_type, _ = mimetypes.guess_type(path.name)
        return SourceItem(name=path.name, data=data, mime_type=mime_type)

    def save_artifact(
        self,
        item: ConvertedItem,
        output_dir: Path,
        used_paths: set[Path] | None = None,
    ) -> Path:
        """Write an item's artifact under its display name.

        Args:
            item: Item with a published artifact
            output_dir: Directory to write into (created if missing)
            used_paths: Paths already written in this batch; updated in place

        Returns:
            Path of the written file

        Raises:
            InvalidFileError: If the item has no artifact or the write fails
            SecurityError: If the output directory contains a traversal
        """
        if item.artifact is None:
            raise InvalidFileError(f"{item.display_name} has no converted image to save")
        if ".." in output_dir.parts:
            raise SecurityError("Path traversal detected in output path: contains '..'")

        self.ensure_directory(output_dir)
        used_paths = used_paths if used_paths is not None else set()

        base_output_path = (output_dir / item.display_name).resolve(strict=False)
        output_path = base_output_path
        duplicate_index = 0
        while output_path in used_paths:
            output_path = self._with_collision_suffix(base_output_path, item.id, duplicate_index)
            duplicate_index += 1

        if output_path != base_output_path:
            self.logger.warning(
                f"Output name collision for {item.display_name}; using {output_path.name}"
            )

        self.write_file(output_path, item.artifact.data)
        used_paths.add(output_path)
        self.logger.debug(f"Saved {output_path} ({item.artifact.size} bytes)")
        return output_path

    def save_all(self, items: Iterable[ConvertedItem], output_dir: Path) -> list[Path]:
        """Save every item that has an artifact; items without one are skipped."""
        used_paths: set[Path] = set()
        saved = []
        for item in items:
            if item.artifact is None:
                self.logger.debug(f"Skipping {item.display_name}: no artifact")
                continue
            saved.append(self.save_artifact(item, output_dir, used_paths))
        return saved

    def write_file(self, path: Path, data: bytes) -> None:
        """Write a file atomically using a temporary sibling.

        Raises:
            InvalidFileError: If the write fails
        """
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_bytes(data)
            temp_path.replace(path)
        except OSError as e:
            if temp_path.exists():
                with contextlib.suppress(OSError):
                    temp_path.unlink()
            raise InvalidFileError(f"Failed to write file {path}: {e}") from e

    def ensure_directory(self, path: Path) -> None:
        """Create directory if it doesn't exist.

        Raises:
            InvalidFileError: If directory creation fails
        """
        try:
            path.resolve(strict=False).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InvalidFileError(f"Failed to create directory {path}: {e}") from e

    @staticmethod
    def _with_collision_suffix(base_output_path: Path, item_id: str, index: int) -> Path:
        """Build a collision-safe output filename from a hash of the item id."""
        item_hash = blake2s(item_id.encode("utf-8"), digest_size=4).hexdigest()
        ordinal_suffix = "" if index == 0 else f"_{index}"
        unique_name = f"{base_output_path.stem}_{item_hash}{ordinal_suffix}{base_output_path.suffix}"
        return base_output_path.with_name(unique_name)
