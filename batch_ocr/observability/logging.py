"""
Structured logging configuration using structlog.
"""

import logging
import sys
import uuid
from functools import lru_cache

import structlog

from batch_ocr.config import get_settings


def setup_logging(log_level: str = None, log_format: str = None):
    """
    Configure structured logging.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override format ('json' or 'console')
    """
    settings = get_settings()
    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    # Console output goes to stderr so CLI results on stdout stay clean
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr if fmt == "console" else sys.stdout,
        level=getattr(logging, level)
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True)
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache()
def get_logger(name: str = None):
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class BatchContext:
    """Binds batch-scoped logging context for the duration of a run."""

    def __init__(self, **context):
        self.context = context

    def __enter__(self):
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        structlog.contextvars.unbind_contextvars(*self.context)
        return False


def bind_request_context(request_id: str = None, **kwargs):
    """Bind context variables for the current request."""
    request_id = request_id or str(uuid.uuid4())[:8]
    structlog.contextvars.bind_contextvars(request_id=request_id, **kwargs)
    return request_id
