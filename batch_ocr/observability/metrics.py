"""
Prometheus metrics for monitoring.
"""

from functools import lru_cache
from prometheus_client import Counter, Histogram, Gauge, Info

from batch_ocr import __version__


class OCRMetrics:
    """Batch OCR metrics."""

    def __init__(self):
        # Remote call metrics
        self.attempts_total = Counter(
            "batch_ocr_attempts_total",
            "Remote OCR calls by outcome",
            ["backend", "outcome"]
        )

        self.attempt_duration = Histogram(
            "batch_ocr_attempt_duration_seconds",
            "Remote OCR call duration",
            ["backend"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
        )

        self.rotations_total = Counter(
            "batch_ocr_credential_rotations_total",
            "Times the rotation cursor moved to the next credential"
        )

        # Item metrics
        self.items_total = Counter(
            "batch_ocr_items_total",
            "Processed images by final status",
            ["status", "failure_kind"]
        )

        self.characters_extracted = Counter(
            "batch_ocr_characters_extracted_total",
            "Total characters extracted"
        )

        # Batch metrics
        self.batches_total = Counter(
            "batch_ocr_batches_total",
            "Batches by lifecycle event",
            ["event"]
        )

        self.active_batches = Gauge(
            "batch_ocr_active_batches",
            "Batches currently being processed"
        )

        # HTTP metrics
        self.http_requests_total = Counter(
            "batch_ocr_http_requests_total",
            "HTTP requests by route and status",
            ["method", "path", "status"]
        )

        self.active_requests = Gauge(
            "batch_ocr_active_requests",
            "Currently active HTTP requests"
        )

        self.info = Info(
            "batch_ocr",
            "Batch OCR information"
        )
        self.info.info({"version": __version__})

    def record_attempt(self, backend: str, outcome: str, duration: float):
        """Record one remote call."""
        self.attempts_total.labels(backend=backend, outcome=outcome).inc()
        self.attempt_duration.labels(backend=backend).observe(duration)

    def record_rotation(self):
        self.rotations_total.inc()

    def record_item(self, status: str, failure_kind: str = "", char_count: int = 0):
        """Record an item reaching its final status."""
        self.items_total.labels(status=status, failure_kind=failure_kind or "none").inc()
        if char_count:
            self.characters_extracted.inc(char_count)

    def record_batch(self, event: str):
        self.batches_total.labels(event=event).inc()

    def record_http_request(self, method: str, path: str, status: int):
        self.http_requests_total.labels(method=method, path=path, status=str(status)).inc()


@lru_cache()
def get_metrics() -> OCRMetrics:
    """Get singleton metrics instance."""
    return OCRMetrics()
