"""
Google Cloud Vision client authenticated with API keys.
"""

from typing import Dict

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import vision
from google.cloud.vision_v1 import types

from batch_ocr.batch.models import ImageItem
from batch_ocr.config import get_settings
from batch_ocr.credentials import mask_credential
from batch_ocr.errors import RateLimitedError, TerminalRemoteError
from batch_ocr.remote.base import RemoteOcrClient

logger = structlog.get_logger(__name__)

# google.rpc.Code.RESOURCE_EXHAUSTED
RESOURCE_EXHAUSTED = 8


class VisionClient(RemoteOcrClient):
    """
    Extracts text with DOCUMENT_TEXT_DETECTION.

    Vision takes no instruction prompt; document detection already keeps the
    reading order and line structure. One ImageAnnotatorClient is created
    lazily per API key and reused.
    """

    backend = "vision"

    def __init__(self, timeout: float = None):
        self.timeout = timeout or get_settings().request_timeout_seconds
        self._clients: Dict[str, vision.ImageAnnotatorClient] = {}

    def client_for(self, credential: str) -> vision.ImageAnnotatorClient:
        """Lazy-load the Vision API client bound to one API key."""
        if credential not in self._clients:
            self._clients[credential] = vision.ImageAnnotatorClient(
                client_options={"api_key": credential}
            )
            logger.info("vision_client_initialized", credential=mask_credential(credential))
        return self._clients[credential]

    def _extract_text(self, image: ImageItem, credential: str) -> str:
        request = types.AnnotateImageRequest(
            image=types.Image(content=image.content),
            features=[types.Feature(type_=vision.Feature.Type.DOCUMENT_TEXT_DETECTION)]
        )

        try:
            response = self.client_for(credential).annotate_image(request, timeout=self.timeout)
        except google_exceptions.TooManyRequests as e:
            raise RateLimitedError(e.message or str(e))
        except google_exceptions.GoogleAPIError as e:
            raise TerminalRemoteError(
                getattr(e, "message", None) or str(e),
                status_code=getattr(e, "code", None)
            )

        if response.error.message:
            if response.error.code == RESOURCE_EXHAUSTED:
                raise RateLimitedError(response.error.message)
            raise TerminalRemoteError(response.error.message, status_code=response.error.code)

        return response.full_text_annotation.text

    def close(self):
        self._clients.clear()
        logger.info("vision_client_closed")
