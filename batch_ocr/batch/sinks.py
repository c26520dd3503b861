"""
Receivers for batch progress events.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import structlog

from batch_ocr.batch.models import BatchRun, ImageItem, ItemOutcome, ItemStatus

logger = structlog.get_logger(__name__)


class ResultSink:
    """
    Receives status events from a BatchProcessor.

    All hooks are no-ops by default; override the ones you need. Events for
    one batch arrive in this order:

        on_batch_started
        for each image:
            on_item_status_changed (in_progress)
            on_retrying*            (once per rate-limited attempt)
            on_item_status_changed (succeeded | failed)
        on_batch_complete
    """

    def on_batch_started(self, run: BatchRun):
        pass

    def on_item_status_changed(self, run: BatchRun, item: ImageItem, outcome: ItemOutcome):
        pass

    def on_retrying(self, run: BatchRun, item: ImageItem, attempt: int):
        pass

    def on_batch_complete(self, run: BatchRun):
        pass


class LoggingSink(ResultSink):
    """Writes every event to the structured log."""

    def on_batch_started(self, run: BatchRun):
        logger.info("batch_processing", run_id=run.run_id, total_images=run.total)

    def on_item_status_changed(self, run: BatchRun, item: ImageItem, outcome: ItemOutcome):
        if outcome.status == ItemStatus.FAILED:
            logger.warning(
                "item_failed",
                position=item.position,
                failure_kind=outcome.failure_kind.value,
                reason=outcome.reason,
                attempts=outcome.attempts
            )
        else:
            logger.info("item_status_changed", position=item.position, status=outcome.status.value)

    def on_retrying(self, run: BatchRun, item: ImageItem, attempt: int):
        logger.warning("rate_limited_switching_key", position=item.position, attempt=attempt)

    def on_batch_complete(self, run: BatchRun):
        logger.info(
            "batch_complete",
            run_id=run.run_id,
            succeeded=run.succeeded,
            failed=run.failed
        )


@dataclass
class SinkEvent:
    kind: str
    position: Optional[int] = None
    status: Optional[ItemStatus] = None
    attempt: Optional[int] = None
    data: Any = None


@dataclass
class CollectingSink(ResultSink):
    """Keeps every event in memory, in arrival order."""

    events: List[SinkEvent] = field(default_factory=list)

    def on_batch_started(self, run: BatchRun):
        self.events.append(SinkEvent("batch_started"))

    def on_item_status_changed(self, run: BatchRun, item: ImageItem, outcome: ItemOutcome):
        self.events.append(SinkEvent("item_status", item.position, outcome.status))

    def on_retrying(self, run: BatchRun, item: ImageItem, attempt: int):
        self.events.append(SinkEvent("retrying", item.position, attempt=attempt))

    def on_batch_complete(self, run: BatchRun):
        self.events.append(SinkEvent("batch_complete"))

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def statuses(self, position: int) -> List[ItemStatus]:
        return [e.status for e in self.events if e.kind == "item_status" and e.position == position]

    def retries(self) -> List[int]:
        return [e.attempt for e in self.events if e.kind == "retrying"]


class CompositeSink(ResultSink):
    """Forwards each event to several sinks, in order."""

    def __init__(self, sinks: Sequence[ResultSink]):
        self.sinks = list(sinks)

    def on_batch_started(self, run):
        for sink in self.sinks:
            sink.on_batch_started(run)

    def on_item_status_changed(self, run, item, outcome):
        for sink in self.sinks:
            sink.on_item_status_changed(run, item, outcome)

    def on_retrying(self, run, item, attempt):
        for sink in self.sinks:
            sink.on_retrying(run, item, attempt)

    def on_batch_complete(self, run):
        for sink in self.sinks:
            sink.on_batch_complete(run)
