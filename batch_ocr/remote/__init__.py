"""Remote OCR clients."""

from batch_ocr.config import get_settings
from batch_ocr.remote.base import OCR_PROMPT, RemoteOcrClient
from batch_ocr.remote.gemini import GeminiClient, ModelInfo


def create_client(backend: str = None, **kwargs) -> RemoteOcrClient:
    """Build the client for the configured backend."""
    backend = backend or get_settings().ocr_backend
    if backend == "gemini":
        return GeminiClient(**kwargs)
    if backend == "vision":
        # google-cloud-vision is heavy; only import it when selected
        from batch_ocr.remote.vision import VisionClient
        return VisionClient(**kwargs)
    raise ValueError(f"Unknown OCR backend: {backend}")


__all__ = ["OCR_PROMPT", "RemoteOcrClient", "GeminiClient", "ModelInfo", "create_client"]
