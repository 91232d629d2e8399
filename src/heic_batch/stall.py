"""Stall detection for single transcode attempts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import TYPE_CHECKING

from heic_batch.config import Config
from heic_batch.errors import ConversionError, StalledConversion
from heic_batch.logging_config import get_logger

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    from heic_batch.models import Artifact

    AttemptRunner = Callable[[Callable[[int], None]], Awaitable[Artifact]]


class AttemptStatus(Enum):
    """Outcome tag of one attempt."""

    COMPLETED = "completed"
    STALLED = "stalled"
    FAILED = "failed"


@dataclass
class AttemptResult:
    """Tagged result of one deadline-bounded attempt.

    Attributes:
        status: Which branch the attempt ended in
        artifact: Output artifact when COMPLETED
        error: Cause when STALLED or FAILED
        last_progress: Last progress value the attempt reported
        elapsed: Attempt duration in seconds
    """

    status: AttemptStatus
    artifact: Artifact | None = None
    error: Exception | None = None
    last_progress: int = 0
    elapsed: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status is AttemptStatus.COMPLETED

    @property
    def stalled(self) -> bool:
        return self.status is AttemptStatus.STALLED


class _ProgressWatcher:
    """Record the latest progress while forwarding it downstream."""

    def __init__(self, downstream: Callable[[int], None] | None) -> None:
        self.downstream = downstream
        self.latest = 0

    def __call__(self, value: int) -> None:
        self.latest = max(self.latest, value)
        if self.downstream is not None:
            self.downstream(value)


class StallDetector:
    """Bound one transcode attempt with a progress-based deadline.

    If progress has not advanced past ``stall_threshold`` once ``stall_timeout``
    seconds have passed, the attempt is cancelled and reported as STALLED.
    An attempt past the threshold at the deadline is allowed to finish.
    Retrying is left to the caller.
    """

    def __init__(self, config: Config | None = None, logger: logging.Logger | None = None):
        self.config = config or Config()
        self.logger = logger or get_logger(__name__)

    @property
    def timeout(self) -> float:
        return self.config.stall_timeout

    @property
    def threshold(self) -> int:
        return self.config.stall_threshold

    async def attempt(
        self,
        run: AttemptRunner,
        on_progress: Callable[[int], None] | None = None,
        label: str = "item",
    ) -> AttemptResult:
        """Run one attempt under the stall deadline.

        Args:
            run: Coroutine factory receiving the progress callback to use
            on_progress: Downstream progress callback
            label: Name used in log messages

        Returns:
            AttemptResult tagged COMPLETED, STALLED or FAILED
        """
        watcher = _ProgressWatcher(on_progress)
        start_time = perf_counter()
        task = asyncio.ensure_future(run(watcher))

        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
            if not done:
                if watcher.latest <= self.threshold:
                    task.cancel()
                    await asyncio.gather(task, return_exceptions=True)
                    elapsed = perf_counter() - start_time
                    self.logger.warning(
                        f"Conversion of {label} stalled at {watcher.latest}% "
                        f"after {elapsed:.1f}s"
                    )
                    return AttemptResult(
                        status=AttemptStatus.STALLED,
                        error=StalledConversion(
                            f"Conversion of {label} made no progress past "
                            f"{watcher.latest}% within {self.timeout:g}s"
                        ),
                        last_progress=watcher.latest,
                        elapsed=elapsed,
                    )
                self.logger.debug(
                    f"{label} is at {watcher.latest}% at the deadline, waiting for completion"
                )
            artifact = await task
        except asyncio.CancelledError:
            task.cancel()
            raise
        except ConversionError as e:
            return AttemptResult(
                status=AttemptStatus.FAILED,
                error=e,
                last_progress=watcher.latest,
                elapsed=perf_counter() - start_time,
            )
        except Exception as e:
            self.logger.exception(f"Unexpected error converting {label}")
            return AttemptResult(
                status=AttemptStatus.FAILED,
                error=e,
                last_progress=watcher.latest,
                elapsed=perf_counter() - start_time,
            )

        return AttemptResult(
            status=AttemptStatus.COMPLETED,
            artifact=artifact,
            last_progress=watcher.latest,
            elapsed=perf_counter() - start_time,
        )
