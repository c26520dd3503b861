"""Batch processing module."""

from batch_ocr.batch.models import (
    BatchRun,
    BatchStatus,
    FailureKind,
    ImageItem,
    ItemOutcome,
    ItemStatus,
)
from batch_ocr.batch.processor import BatchProcessor
from batch_ocr.batch.sinks import CollectingSink, CompositeSink, LoggingSink, ResultSink

__all__ = [
    "BatchRun",
    "BatchStatus",
    "FailureKind",
    "ImageItem",
    "ItemOutcome",
    "ItemStatus",
    "BatchProcessor",
    "CollectingSink",
    "CompositeSink",
    "LoggingSink",
    "ResultSink",
]
