"""
Process-wide objects shared by the API routes.

One pool and one processor serve every request, so the rotation cursor is
shared by all batches and batches never run side by side.
"""

from functools import lru_cache

from batch_ocr.batch import BatchProcessor, LoggingSink
from batch_ocr.config import get_settings
from batch_ocr.credentials import CredentialPool
from batch_ocr.remote import GeminiClient, create_client


@lru_cache()
def get_pool() -> CredentialPool:
    return CredentialPool(get_settings().api_keys)


@lru_cache()
def get_processor() -> BatchProcessor:
    return BatchProcessor(get_pool(), create_client(), sink=LoggingSink())


def get_model_client() -> GeminiClient:
    return GeminiClient()
