"""
Pipeline engine for the detector monitor bridge.

This module owns the poll loop: fetch an encoded frame from the observation
source, decode it, drop duplicates, and for new frames sample metadata,
publish the viewer file and notify the viewer. The previously published
frame lives on the engine instance and nowhere else.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from models.config import Config
from models.errors import MonitorError, NotifyError
from models.frame import Frame
from observation import ObservationSource, create_source_from_config
from pipeline.stages.change import is_changed
from pipeline.stages.header import header_for
from pipeline.stages.publish import PublishedFile

if TYPE_CHECKING:
    from runtime.context import RuntimeContext


class PollOutcome(str, Enum):
    """Result of one poll cycle."""
    EMPTY = "empty"
    UNCHANGED = "unchanged"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        poll_interval: Seconds to wait between polls (0 polls back to back).
        error_backoff: Initial delay after a failed cycle, 0 disables backoff.
        max_error_backoff: Upper bound for the doubled backoff delay.
        stats_log_interval: Seconds between status log messages.
        max_polls: Stop after this many polls, None runs until stopped.
    """
    poll_interval: float = 0.0
    error_backoff: float = 0.0
    max_error_backoff: float = 30.0
    stats_log_interval: float = 60.0
    max_polls: Optional[int] = None


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    polls: int = 0
    published: int = 0
    unchanged: int = 0
    empty: int = 0
    failures: Dict[str, int] = field(default_factory=dict)
    notify_failures: int = 0
    consecutive_failures: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)

    @property
    def failed(self) -> int:
        return sum(self.failures.values())

    def record_failure(self, stage: str) -> None:
        self.failures[stage] = self.failures.get(stage, 0) + 1


class PipelineEngine:
    """
    Poll loop over an ObservationSource.

    This engine:
    - Reads encoded frames from the source, one cycle at a time
    - Decodes them into Frames and skips frames equal to the last published one
    - Samples metadata, builds the header and publishes both files
    - Notifies the viewer (best effort, never rolls back a publish)

    Example:
        source = MonitorSource(MonitorSourceConfig(host="10.0.0.5"))
        engine = PipelineEngine(source, ctx, PipelineConfig())
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        ctx: "RuntimeContext",
        config: Optional[PipelineConfig] = None,
    ):
        self.source = source
        self.ctx = ctx
        self.config = config or PipelineConfig()
        self.stats = PipelineStats()
        self._running = False
        self._previous: Optional[Frame] = None
        self._callbacks: List[Callable[[Frame, PublishedFile], None]] = []

    @property
    def previous_frame(self) -> Optional[Frame]:
        """Last successfully published frame, None before the first publish."""
        return self._previous

    @property
    def is_running(self) -> bool:
        return self._running

    def add_callback(self, callback: Callable[[Frame, PublishedFile], None]) -> None:
        """
        Add a callback to be called after each successful publish.

        Args:
            callback: Function taking (frame, published_file) as arguments.
        """
        self._callbacks.append(callback)

    def poll_once(self) -> PollOutcome:
        """
        Run exactly one fetch, decode, compare, publish, notify cycle.

        Stage failures are logged and reported as FAILED. The previous frame
        is only replaced once both files have been published.
        """
        self.stats.polls += 1
        try:
            encoded = self.source.read()
            if encoded is None or len(encoded) == 0:
                self.stats.empty += 1
                return PollOutcome.EMPTY

            frame = self.ctx.decoder.decode(
                encoded.data, timestamp=encoded.timestamp, index=encoded.index
            )
            if not is_changed(self._previous, frame):
                self.stats.unchanged += 1
                logging.debug(f"Frame {frame.index} unchanged, skipping publish")
                return PollOutcome.UNCHANGED

            metadata = self.ctx.metadata.read()
            header = header_for(frame, metadata)
            published = self.ctx.publisher.publish(header, frame, metadata)
        except MonitorError as e:
            self.stats.record_failure(e.stage)
            logging.error(f"[{e.stage}] {self.source.source_id}: {e}")
            return PollOutcome.FAILED

        self._previous = frame
        self.stats.published += 1
        self.ctx.record_publish(frame, published)
        logging.info(
            f"Published frame {frame.index} ({frame.width}x{frame.height}) "
            f"to {published.image_path}"
        )

        self._notify(published)

        for callback in self._callbacks:
            try:
                callback(frame, published)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        return PollOutcome.PUBLISHED

    def _notify(self, published: PublishedFile) -> None:
        if self.ctx.notifier is None:
            return
        try:
            self.ctx.notifier.notify(published.image_path)
        except NotifyError as e:
            self.stats.notify_failures += 1
            self.stats.record_failure(e.stage)
            logging.warning(f"[{e.stage}] {self.source.source_id}: {e}")

    def run(self) -> None:
        """
        Run the poll loop.

        Opens the observation source, polls until stopped or max_polls is
        reached, then closes resources.
        """
        self._running = True
        self.stats = PipelineStats()

        try:
            self.source.open()
            logging.info(f"Pipeline started: source={self.source.source_id}")

            while self._running:
                if self.config.max_polls is not None and self.stats.polls >= self.config.max_polls:
                    logging.info(f"Reached max polls ({self.config.max_polls}), stopping")
                    break

                try:
                    outcome = self.poll_once()
                except Exception as e:
                    logging.exception(f"Unexpected error in poll cycle: {e}")
                    outcome = PollOutcome.FAILED

                if outcome == PollOutcome.FAILED:
                    self.stats.consecutive_failures += 1
                else:
                    self.stats.consecutive_failures = 0

                self._handle_periodic_tasks()
                self._wait(self._next_delay(outcome))

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the pipeline to stop before the next poll."""
        self._running = False

    def _next_delay(self, outcome: PollOutcome) -> float:
        if outcome == PollOutcome.FAILED and self.config.error_backoff > 0:
            exponent = max(self.stats.consecutive_failures - 1, 0)
            delay = self.config.error_backoff * (2 ** min(exponent, 16))
            return min(delay, self.config.max_error_backoff)
        return self.config.poll_interval

    def _wait(self, delay: float) -> None:
        # Sleep in short slices so stop() takes effect promptly
        deadline = time.time() + delay
        while self._running and delay > 0:
            remaining = deadline - time.time()
            if remaining <= 0:
                break
            time.sleep(min(remaining, 0.2))

    def _handle_periodic_tasks(self) -> None:
        """Log statistics periodically."""
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            self._log_stats()
            self.stats.last_stats_log_time = now

    def _log_stats(self) -> None:
        logging.info(
            f"Pipeline stats: polls={self.stats.polls}, "
            f"published={self.stats.published}, "
            f"unchanged={self.stats.unchanged}, "
            f"empty={self.stats.empty}, "
            f"failures={self.stats.failures}"
        )

    def _cleanup(self) -> None:
        """Clean up resources."""
        self._running = False

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        self.ctx.close()

        self._log_stats()
        logging.info("Pipeline stopped")


def create_engine_from_config(
    config: Config,
    ctx: "RuntimeContext",
    source: Optional[ObservationSource] = None,
    max_polls: Optional[int] = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the typed config.

    Args:
        config: Full application config.
        ctx: RuntimeContext with metadata provider, publisher and notifier.
        source: Observation source override; defaults to the detector monitor.
        max_polls: Stop after this many polls (None runs until stopped).
    """
    if source is None:
        source = create_source_from_config(config.detector)

    settings = config.pipeline
    pipeline_config = PipelineConfig(
        poll_interval=settings.poll_interval,
        error_backoff=settings.error_backoff,
        max_error_backoff=settings.max_error_backoff,
        stats_log_interval=settings.stats_log_interval,
        max_polls=max_polls,
    )

    return PipelineEngine(source, ctx, pipeline_config)
