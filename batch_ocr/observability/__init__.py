"""Observability module - logging and metrics."""

from batch_ocr.observability.logging import setup_logging, get_logger
from batch_ocr.observability.metrics import get_metrics, OCRMetrics

__all__ = ["setup_logging", "get_logger", "get_metrics", "OCRMetrics"]
