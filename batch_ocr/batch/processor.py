"""
Sequential batch processing with API key rotation on rate limits.
"""

import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

import structlog

from batch_ocr.batch.models import BatchRun, BatchStatus, FailureKind, ImageItem
from batch_ocr.batch.sinks import LoggingSink, ResultSink
from batch_ocr.credentials import CredentialPool, mask_credential
from batch_ocr.errors import (
    BatchInProgressError,
    CredentialsExhaustedError,
    EmptyPoolError,
    RateLimitedError,
    TerminalRemoteError,
)
from batch_ocr.observability.logging import BatchContext
from batch_ocr.observability.metrics import get_metrics

if TYPE_CHECKING:
    from batch_ocr.remote.base import RemoteOcrClient

logger = structlog.get_logger(__name__)


class BatchProcessor:
    """
    Runs a batch of images through a remote OCR client, one image at a time.

    For each image the processor calls the client with the pool's current
    key. A rate-limited call moves the pool's cursor to the next key and the
    same image is retried, at most once per active key. Any other failure
    fails the image straight away. The cursor is never reset, so the next
    image starts from the key the previous one ended on.

    Failures are scoped to the image; the batch always runs to the end.
    """

    def __init__(self, pool: CredentialPool, client: "RemoteOcrClient", sink: ResultSink = None):
        self.pool = pool
        self.client = client
        self.sink = sink or LoggingSink()
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def process(self, items: Iterable[ImageItem], sink: ResultSink = None) -> BatchRun:
        """Create a run for `items` and process it."""
        return self.process_run(BatchRun(items=list(items)), sink=sink)

    def process_run(self, run: BatchRun, sink: ResultSink = None) -> BatchRun:
        """
        Process every image of `run` in order.

        Args:
            run: Batch with all items pending
            sink: Receives progress events (defaults to the processor's sink)

        Returns:
            The same run, complete

        Raises:
            EmptyPoolError: If no active key is configured; nothing is processed
            BatchInProgressError: If another batch is running on this processor
        """
        sink = sink or self.sink

        if not self._lock.acquire(blocking=False):
            raise BatchInProgressError()
        try:
            # Refuse before any item leaves PENDING
            self.pool.active_credentials()

            metrics = get_metrics()
            metrics.active_batches.inc()
            metrics.record_batch("started")
            try:
                with BatchContext(run_id=run.run_id):
                    run.status = BatchStatus.PROCESSING
                    sink.on_batch_started(run)
                    for item in run.items:
                        sink.on_item_status_changed(run, item, run.outcome(item))

                    for item in run.items:
                        self._process_item(run, item, sink)

                    run.status = BatchStatus.COMPLETE
                    run.completed_at = datetime.now(timezone.utc)
                    metrics.record_batch("completed")
                    sink.on_batch_complete(run)
            finally:
                metrics.active_batches.dec()
        finally:
            self._lock.release()

        return run

    def _process_item(self, run: BatchRun, item: ImageItem, sink: ResultSink):
        outcome = run.outcome(item)
        outcome.start()
        sink.on_item_status_changed(run, item, outcome)

        # Keys may be edited between images; use the pool as it is now
        try:
            bound = len(self.pool.active_credentials())
        except EmptyPoolError:
            bound = 0

        metrics = get_metrics()
        attempts = 0
        done = False

        while not done and attempts < bound:
            try:
                credential = self.pool.current()
            except EmptyPoolError:
                break
            outcome.attempts += 1
            try:
                text = self.client.extract_text(item, credential)
            except RateLimitedError:
                attempts += 1
                try:
                    self.pool.advance()
                except EmptyPoolError:
                    # Every key was removed while the call was in flight
                    break
                metrics.record_rotation()
                logger.warning(
                    "ocr_attempt_rate_limited",
                    position=item.position,
                    credential=mask_credential(credential),
                    attempt=attempts,
                    max_attempts=bound
                )
                sink.on_retrying(run, item, attempts)
            except TerminalRemoteError as e:
                outcome.fail(e.message, FailureKind.REMOTE_ERROR)
                done = True
            else:
                outcome.succeed(text)
                done = True

        if not done:
            exhausted = CredentialsExhaustedError(attempts)
            logger.error("credentials_exhausted", position=item.position, attempts=attempts)
            outcome.fail(exhausted.message, FailureKind.CREDENTIALS_EXHAUSTED)

        metrics.record_item(
            outcome.status.value,
            outcome.failure_kind.value if outcome.failure_kind else "",
            len(outcome.text or "")
        )
        sink.on_item_status_changed(run, item, outcome)
