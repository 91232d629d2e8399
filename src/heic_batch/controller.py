"""Pipeline controller for HEIC batch conversion.

This module provides the composition root that owns batch-level state and
coordinates the components:
- FormatDetector to screen submitted files
- BatchScheduler for chunked conversion with stall retries
- ArtifactLifecycleManager for preview handles
- PreferencesStore for the remembered format and qualities
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from heic_batch import notifications
from heic_batch.artifacts import ArtifactLifecycleManager
from heic_batch.config import Config
from heic_batch.detector import is_heic_candidate
from heic_batch.errors import OverCapacityError, PipelineBusyError
from heic_batch.logging_config import (
    get_logger,
    log_operation_complete,
    log_operation_start,
    set_batch_label,
)
from heic_batch.models import (
    AggregateState,
    ConversionTarget,
    ConvertedItem,
    ImageFormat,
    ItemView,
)
from heic_batch.naming import sanitize_base_name
from heic_batch.notifications import ConversionTrigger
from heic_batch.preferences import InMemoryPreferencesStore, Preferences, PreferencesStore
from heic_batch.scheduler import BatchScheduler

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Iterable

    from heic_batch.models import BatchOutcome, SourceItem
    from heic_batch.notifications import Notification


class PipelineController:
    """Own the batch and re-run conversions when the target changes.

    This class provides the entry point for the presentation layer, handling:
    - File submission with cap enforcement
    - Format and quality changes, reconverting from the original sources
    - Renaming and removing items
    - Resetting the batch and retiring every preview handle
    """

    def __init__(
        self,
        config: Config | None = None,
        preferences: PreferencesStore | None = None,
        scheduler: BatchScheduler | None = None,
        logger: logging.Logger | None = None,
        notify: Callable[[Notification], None] | None = None,
        progress_callback: Callable[[int], None] | None = None,
    ):
        """Initialize controller with configuration.

        Args:
            config: Pipeline configuration
            preferences: Store for the last-used format and qualities
            scheduler: Optional batch scheduler (built from config if omitted)
            logger: Optional logger instance
            notify: Optional callback receiving user notifications
            progress_callback: Optional callback receiving aggregate progress (0-100)
        """
        self.config = config or Config()
        self.logger = logger or get_logger(__name__)
        self.notify_callback = notify
        self.progress_callback = progress_callback

        self.scheduler = scheduler or BatchScheduler(
            self.config, artifacts=ArtifactLifecycleManager()
        )
        self.artifacts = self.scheduler.artifacts

        self.preferences_store = preferences or InMemoryPreferencesStore()
        self._preferences = self.preferences_store.load() or Preferences.defaults(
            self.config.default_format, self.config.default_quality
        )

        self._items: list[ConvertedItem] = []
        self._is_converting = False
        self._aggregate_progress = 0
        # Bumped on reset so results of runs started earlier are discarded.
        self._generation = 0

        self.logger.info(
            f"PipelineController initialized (format={self.format.value}, "
            f"quality={self.quality:g}, max_files={self.config.max_files})"
        )

    @property
    def format(self) -> ImageFormat:
        return self._preferences.format

    @property
    def quality(self) -> float:
        return self._preferences.quality_for(self.format, self.config.default_quality)

    @property
    def qualities(self) -> dict[ImageFormat, float]:
        return {
            fmt: self._preferences.quality_for(fmt, self.config.default_quality)
            for fmt in ImageFormat
        }

    @property
    def target(self) -> ConversionTarget:
        return ConversionTarget(self.format, self.quality).normalized()

    @property
    def items(self) -> list[ConvertedItem]:
        return list(self._items)

    @property
    def is_converting(self) -> bool:
        return self._is_converting

    def get_item(self, item_id: str) -> ConvertedItem:
        """Look up a visible item.

        Raises:
            KeyError: If no visible item has this id
        """
        for item in self._items:
            if item.id == item_id:
                return item
        raise KeyError(f"No item with id {item_id}")

    def item_views(self) -> list[ItemView]:
        return [
            ItemView(
                id=item.id,
                display_name=item.display_name,
                preview_handle=item.preview_handle.uri if item.preview_handle else None,
                progress=item.progress,
                artifact=item.artifact,
                renamed=item.renamed,
            )
            for item in self._items
        ]

    def aggregate(self) -> AggregateState:
        return AggregateState(
            is_converting=self._is_converting,
            aggregate_progress=self._aggregate_progress,
            total_count=len(self._items),
            completed_count=sum(1 for item in self._items if item.artifact is not None),
        )

    def check_capacity(self, count: int) -> None:
        """Check whether count more files fit in the batch.

        Raises:
            OverCapacityError: If the batch cap would be exceeded; carries how
                many files still fit and how many are excluded
        """
        capacity = max(0, self.config.max_files - len(self._items))
        if count > capacity:
            raise OverCapacityError(
                f"Batch cap of {self.config.max_files} reached; "
                f"excluding {count - capacity} of {count} files",
                accepted=capacity,
                excluded=count - capacity,
            )

    async def submit_files(self, sources: Iterable[SourceItem]) -> BatchOutcome | None:
        """Add files to the batch and convert them to the current target.

        Files that are not HEIC/HEIF by name, mime type or signature are
        skipped. Files beyond the batch cap are excluded before any work
        starts, with a notification naming how many were excluded.

        Args:
            sources: Files selected by the user

        Returns:
            BatchOutcome for the new items, or None if nothing was accepted

        Raises:
            PipelineBusyError: If a conversion is already running
        """
        self._ensure_idle("submit files")
        sources = list(sources)

        candidates = []
        for source in sources:
            detection = self.scheduler.detector.detect(source.prefix())
            if is_heic_candidate(source.name, source.mime_type, detection):
                candidates.append((source, detection))
        invalid = len(sources) - len(candidates)
        if invalid:
            self.logger.warning(f"Skipping {invalid} files that are not HEIC/HEIF")
            self._notify(notifications.invalid_files(invalid))

        accepted = candidates
        try:
            self.check_capacity(len(candidates))
        except OverCapacityError as e:
            self.logger.warning(str(e))
            accepted = candidates[: e.accepted]
            self._notify(notifications.over_capacity(self.config.max_files, e.excluded))

        if not accepted:
            return None

        new_items = self.scheduler.accept(
            [source for source, _ in accepted],
            self.target,
            detections=[detection for _, detection in accepted],
        )
        self._items = new_items + self._items
        return await self._convert(new_items, ConversionTrigger.SUBMIT)

    async def set_format(self, target_format: ImageFormat | str) -> BatchOutcome | None:
        """Switch the target format and reconvert the whole batch.

        Re-selecting the current format is a no-op.

        Raises:
            ValueError: If the format is not supported
            PipelineBusyError: If a conversion is already running
        """
        target_format = ImageFormat.parse(target_format)
        self._ensure_idle("change format")
        if target_format is self.format:
            return None

        self._preferences.format = target_format
        self.preferences_store.save(self._preferences)
        self.logger.info(f"Target format changed to {target_format.value}")

        if not self._items:
            return None
        return await self._convert(list(self._items), ConversionTrigger.FORMAT)

    async def set_quality(self, quality: float) -> BatchOutcome | None:
        """Change the quality of the current format and reconvert the batch.

        PNG quality is fixed, and re-applying the current quality is a no-op.

        Raises:
            ValueError: If quality is outside 0-1
            PipelineBusyError: If a conversion is already running
        """
        if not 0.0 <= quality <= 1.0:
            raise ValueError(f"Quality must be between 0 and 1, got {quality}")
        self._ensure_idle("change quality")

        if not self.format.is_lossy:
            self.logger.debug("Ignoring quality change for PNG")
            return None
        if quality == self.quality:
            return None

        self._preferences.qualities[self.format] = quality
        self.preferences_store.save(self._preferences)
        self.logger.info(f"Quality for {self.format.value} changed to {quality:g}")

        if not self._items:
            return None
        return await self._convert(list(self._items), ConversionTrigger.QUALITY)

    def rename(self, item_id: str, proposed_name: str) -> bool:
        """Rename an item's display base name.

        Characters unsafe in file names are stripped; an empty result falls
        back to ``image``. The extension always follows the target format.

        Returns:
            True if the name changed, False if it was already the current name

        Raises:
            KeyError: If no visible item has this id
        """
        item = self.get_item(item_id)
        base_name = sanitize_base_name(proposed_name)
        if base_name == item.base_name:
            return False

        self.logger.debug(f"Renaming {item.display_name} to {base_name}.{item.extension}")
        item.base_name = base_name
        item.renamed = True
        return True

    def remove(self, item_id: str) -> ConvertedItem:
        """Remove one item from the batch and retire its handle.

        Raises:
            KeyError: If no visible item has this id
            PipelineBusyError: If a conversion is running
        """
        self._ensure_idle("remove items")
        item = self.get_item(item_id)
        self._items = [other for other in self._items if other is not item]
        self.artifacts.retire(item)
        return item

    def reset(self) -> None:
        """Discard the batch and retire every artifact.

        Conversions already in flight run to completion; their results are
        discarded when they settle.
        """
        self._generation += 1
        retired = self.artifacts.retire_all(self._items)
        self.logger.info(f"Batch reset ({len(self._items)} items, {retired} handles retired)")
        self._items = []
        self._is_converting = False
        self._aggregate_progress = 0
        set_batch_label(None)

    def close(self) -> None:
        """Tear down the controller with its owning view."""
        self.reset()

    async def _convert(
        self, items: list[ConvertedItem], trigger: ConversionTrigger
    ) -> BatchOutcome:
        """Run the scheduler over items and fold the outcome into batch state."""
        generation = self._generation
        target = self.target
        self._is_converting = True
        self._aggregate_progress = 0
        set_batch_label(f"{trigger.value}:{target.format.value}")

        if trigger is not ConversionTrigger.SUBMIT:
            self._notify(notifications.conversion_started(len(items), trigger))
        log_operation_start(
            self.logger,
            "conversion",
            trigger=trigger.value,
            items=len(items),
            format=target.format.value,
            quality=f"{target.quality:g}",
        )

        try:
            outcome = await self.scheduler.run(
                items,
                target,
                on_progress=lambda value: self._record_progress(generation, value),
                notify=lambda notification: self._notify_run(generation, notification),
            )
        finally:
            if generation == self._generation:
                self._is_converting = False

        if generation != self._generation:
            self.logger.info(f"Discarding results of {len(items)} items from a reset batch")
            self.artifacts.retire_all(items)
            return outcome

        failed_ids = {failure.item.id for failure in outcome.failed}
        if failed_ids:
            self._items = [item for item in self._items if item.id not in failed_ids]
            for failure in outcome.failed:
                self.artifacts.retire(failure.item)
                self._notify(
                    notifications.item_failed(
                        failure.item.id, failure.item.source.name, failure.message
                    )
                )

        self._aggregate_progress = 100
        includes_non_heic = any(
            item.artifact is not None and item.artifact.via_fallback
            for item in outcome.completed
        )
        self._notify(
            notifications.conversion_complete(
                outcome.succeeded,
                outcome.failed_count,
                target.format,
                target.quality,
                includes_non_heic,
                trigger,
            )
        )
        log_operation_complete(
            self.logger,
            "conversion",
            success=outcome.failed_count == 0,
            duration=outcome.total_time,
            succeeded=outcome.succeeded,
            failed=outcome.failed_count,
        )
        set_batch_label(None)
        return outcome

    def _record_progress(self, generation: int, value: int) -> None:
        if generation == self._generation:
            self._aggregate_progress = value
            if self.progress_callback is not None:
                self.progress_callback(value)

    def _notify_run(self, generation: int, notification: Notification) -> None:
        if generation == self._generation:
            self._notify(notification)

    def _ensure_idle(self, action: str) -> None:
        if self._is_converting:
            raise PipelineBusyError(f"Cannot {action} while a conversion is in progress")

    def _notify(self, notification: Notification) -> None:
        self.logger.debug(f"Notification [{notification.kind.value}]: {notification.message}")
        if self.notify_callback is not None:
            self.notify_callback(notification)
