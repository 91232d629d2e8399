"""Lifecycle of derived artifacts and their preview handles."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from heic_batch.logging_config import get_logger
from heic_batch.models import PreviewHandle

if TYPE_CHECKING:
    import logging

    from heic_batch.models import Artifact, ConvertedItem

HANDLE_SCHEME = "heic-batch"


class ArtifactLifecycleManager:
    """Issue and revoke preview handles for converted items.

    Handles live in a registry keyed by URI; a renderer resolves a URI to the
    artifact bytes without the pipeline copying them. Each item owns at most
    one live handle. Publishing a new artifact revokes the previous handle in
    the same step, and every handle must eventually be retired.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_logger(__name__)
        self._handles: dict[str, PreviewHandle] = {}

    def publish(self, item: ConvertedItem, artifact: Artifact) -> PreviewHandle:
        """Attach a new artifact to an item and issue its handle.

        The replacement handle is registered before the old one is revoked,
        so a renderer never holds a dangling reference.

        Args:
            item: Item receiving the artifact
            artifact: Newly transcoded artifact

        Returns:
            The live handle for the new artifact
        """
        handle = PreviewHandle(
            uri=f"{HANDLE_SCHEME}://{uuid.uuid4().hex}",
            item_id=item.id,
            artifact=artifact,
        )
        self._handles[handle.uri] = handle

        previous = item.preview_handle
        item.artifact = artifact
        item.preview_handle = handle
        if previous is not None:
            self._revoke(previous)

        self.logger.debug(f"Published {handle.uri} for {item.display_name}")
        return handle

    def retire(self, item: ConvertedItem) -> None:
        """Revoke an item's handle and drop its artifact."""
        if item.preview_handle is not None:
            self._revoke(item.preview_handle)
            item.preview_handle = None
        item.artifact = None

    def retire_all(self, items: Iterable[ConvertedItem]) -> int:
        """Retire every item's handle.

        Returns:
            Number of handles revoked
        """
        revoked = 0
        for item in items:
            if item.preview_handle is not None:
                revoked += 1
            self.retire(item)
        if revoked:
            self.logger.debug(f"Retired {revoked} preview handles")
        return revoked

    def resolve(self, uri: str) -> Artifact:
        """Return the artifact behind a live handle.

        Raises:
            KeyError: If the handle is unknown or already revoked
        """
        handle = self._handles.get(uri)
        if handle is None or handle.revoked:
            raise KeyError(f"Preview handle is not live: {uri}")
        return handle.artifact

    def live_handles(self, item_id: str) -> list[PreviewHandle]:
        return [h for h in self._handles.values() if h.item_id == item_id]

    @property
    def live_count(self) -> int:
        return len(self._handles)

    def _revoke(self, handle: PreviewHandle) -> None:
        handle.revoked = True
        self._handles.pop(handle.uri, None)
