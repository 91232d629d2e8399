"""Chunked batch scheduler for HEIC conversions."""

from __future__ import annotations

import asyncio
import gc
from time import perf_counter
from typing import TYPE_CHECKING

from heic_batch.artifacts import ArtifactLifecycleManager
from heic_batch.config import Config
from heic_batch.detector import FormatDetector
from heic_batch.errors import ErrorHandler, StalledConversion
from heic_batch.logging_config import get_logger
from heic_batch.models import AttemptState, BatchOutcome, ConvertedItem
from heic_batch.notifications import stall_retry, stall_retry_exhausted
from heic_batch.stall import StallDetector
from heic_batch.transcoder import ImageTranscoder

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Sequence

    from heic_batch.models import (
        Artifact,
        ConversionTarget,
        DetectionResult,
        ItemFailure,
        SourceItem,
    )
    from heic_batch.notifications import Notification

# Attempt progress is held here until the artifact is published, so that
# progress 100 always coincides with a live artifact.
PUBLISH_PENDING_PROGRESS = 99


class BatchProgress:
    """Per-item and aggregate progress of one scheduler run.

    All writes to item progress during a run go through this object, which
    recomputes the aggregate and reports it after every change.
    """

    def __init__(
        self,
        items: Sequence[ConvertedItem],
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        self.items = list(items)
        self.on_progress = on_progress
        self.aggregate = 0

    def update(self, item: ConvertedItem, value: int) -> None:
        """Record attempt progress; values never decrease within an attempt."""
        value = min(value, PUBLISH_PENDING_PROGRESS)
        if value <= item.progress:
            return
        item.progress = value
        self._report()

    def restart(self, item: ConvertedItem) -> None:
        item.progress = 0
        self._report()

    def complete(self, item: ConvertedItem) -> None:
        item.progress = 100
        item.state = AttemptState.COMPLETED
        self._report()

    def fail(self, item: ConvertedItem) -> None:
        item.state = AttemptState.FAILED
        self._report()

    def _report(self) -> None:
        # Settled items count as finished, failed ones included.
        total = sum(100 if item.state.is_terminal else item.progress for item in self.items)
        self.aggregate = total // len(self.items) if self.items else 0
        if self.on_progress is not None:
            self.on_progress(self.aggregate)


class BatchScheduler:
    """Run conversions in bounded chunks with failure isolation.

    This class implements chunked batch processing with:
    - Bounded concurrency (chunk_size items decoded at once)
    - Error isolation (one item failure doesn't stop the batch)
    - Aggregate progress across all items
    - One fresh attempt for stalled items
    """

    def __init__(
        self,
        config: Config | None = None,
        transcoder: ImageTranscoder | None = None,
        artifacts: ArtifactLifecycleManager | None = None,
        stall_detector: StallDetector | None = None,
        detector: FormatDetector | None = None,
        logger: logging.Logger | None = None,
        notify: Callable[[Notification], None] | None = None,
    ):
        """Initialize with configuration and collaborators.

        Args:
            config: Pipeline configuration
            transcoder: Single-item transcoder
            artifacts: Artifact lifecycle manager that publishes results
            stall_detector: Deadline wrapper for attempts
            detector: Format detector used when accepting sources
            logger: Optional logger instance
            notify: Optional callback for stall notifications
        """
        self.config = config or Config()
        self.logger = logger or get_logger(__name__)
        self.detector = detector or FormatDetector()
        self.transcoder = transcoder or ImageTranscoder(self.config, detector=self.detector)
        self.artifacts = artifacts or ArtifactLifecycleManager()
        self.stall_detector = stall_detector or StallDetector(self.config)
        self.error_handler = ErrorHandler(self.logger)
        self.notify = notify

    def accept(
        self,
        sources: Sequence[SourceItem],
        target: ConversionTarget,
        detections: Sequence[DetectionResult] | None = None,
    ) -> list[ConvertedItem]:
        """Create items for sources entering the pipeline.

        Args:
            sources: Source files already checked against the batch cap
            target: Current conversion target
            detections: Signatures already read for these sources, if any

        Returns:
            One new ConvertedItem per source, in the same order
        """
        if detections is None:
            detections = [self.detector.detect(source.prefix()) for source in sources]
        return [
            ConvertedItem.from_source(source, target.format, detection)
            for source, detection in zip(sources, detections, strict=True)
        ]

    async def run(
        self,
        items: Sequence[ConvertedItem],
        target: ConversionTarget,
        on_progress: Callable[[int], None] | None = None,
        notify: Callable[[Notification], None] | None = None,
    ) -> BatchOutcome:
        """Convert every item, one chunk at a time.

        Items inside a chunk are converted concurrently; a chunk starts only
        after the previous one has fully settled. Per-item errors are
        collected in the outcome and never raised.

        Args:
            items: Items to convert from their original sources
            target: Requested format and quality
            on_progress: Receives the aggregate progress (0-100) after every update
            notify: Receives this run's stall notices (defaults to self.notify)

        Returns:
            BatchOutcome with completed items and failures
        """
        if not items:
            return BatchOutcome()

        start_time = perf_counter()
        target = target.normalized()
        outcome = BatchOutcome()
        progress = BatchProgress(items, on_progress)
        notify = notify or self.notify
        for item in progress.items:
            item.begin_attempt()

        chunk_size = self.config.chunk_size
        chunks = [
            progress.items[index : index + chunk_size]
            for index in range(0, len(progress.items), chunk_size)
        ]
        self.logger.info(
            f"Starting batch of {len(progress.items)} items to {target.format.value} "
            f"in {len(chunks)} chunks of up to {chunk_size}"
        )

        for chunk_number, chunk in enumerate(chunks, start=1):
            settled = await asyncio.gather(
                *(self._convert_item(item, target, progress, notify) for item in chunk),
                return_exceptions=True,
            )
            for item, result in zip(chunk, settled, strict=True):
                if isinstance(result, Exception):
                    # _convert_item contains its own errors; this is a last resort.
                    progress.fail(item)
                    outcome.failed.append(
                        self.error_handler.handle_error(
                            result, item, {"operation": "batch_processing"}
                        )
                    )
                elif isinstance(result, BaseException):
                    raise result
                elif result is None:
                    outcome.completed.append(item)
                else:
                    outcome.failed.append(result)

            self.logger.debug(
                f"Chunk {chunk_number}/{len(chunks)} settled "
                f"({outcome.succeeded} completed, {outcome.failed_count} failed so far)"
            )
            if chunk_number < len(chunks):
                await self._yield_between_chunks()

        outcome.total_time = perf_counter() - start_time
        self.logger.info(
            f"Batch complete: {outcome.succeeded} successful, "
            f"{outcome.failed_count} failed in {outcome.total_time:.2f}s"
        )
        return outcome

    async def _convert_item(
        self,
        item: ConvertedItem,
        target: ConversionTarget,
        progress: BatchProgress,
        notify: Callable[[Notification], None] | None,
    ) -> ItemFailure | None:
        """Convert one item, retrying once on a stall.

        Returns:
            None on success, otherwise the failure record
        """
        attempts_allowed = 1 + self.config.max_stall_retries
        item.state = AttemptState.RUNNING

        for attempt in range(1, attempts_allowed + 1):
            result = await self.stall_detector.attempt(
                lambda report: self.transcoder.transcode(
                    item.source, target, report, detection=item.detection
                ),
                on_progress=lambda value: progress.update(item, value),
                label=item.source.name,
            )

            if result.completed and result.artifact is not None:
                self._publish(item, result.artifact)
                progress.complete(item)
                return None

            if not result.stalled:
                progress.fail(item)
                return self.error_handler.handle_error(
                    result.error or RuntimeError("Conversion failed"),
                    item,
                    {"operation": "conversion", "attempt": attempt},
                )

            item.state = AttemptState.STALLED
            if attempt < attempts_allowed:
                self.logger.warning(
                    f"Retrying stalled conversion of {item.source.name} "
                    f"(attempt {attempt + 1}/{attempts_allowed})"
                )
                if notify is not None:
                    notify(stall_retry(item.id, item.source.name))
                item.state = AttemptState.RETRYING
                progress.restart(item)

        if notify is not None:
            notify(stall_retry_exhausted(item.id, item.source.name))
        progress.fail(item)
        return self.error_handler.handle_error(
            StalledConversion(
                f"Conversion of {item.source.name} stalled {attempts_allowed} times",
                attempts=attempts_allowed,
            ),
            item,
            {"operation": "conversion", "attempt": attempts_allowed},
        )

    def _publish(self, item: ConvertedItem, artifact: Artifact) -> None:
        """Hand the artifact to the lifecycle manager; the old handle is retired there."""
        self.artifacts.publish(item, artifact)
        item.extension = artifact.format.extension

    async def _yield_between_chunks(self) -> None:
        """Let the event loop breathe and hint that decode buffers can be reclaimed."""
        gc.collect()
        await asyncio.sleep(self.config.chunk_pause)
