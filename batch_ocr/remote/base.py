"""
Remote OCR client interface.
"""

import time
from abc import ABC, abstractmethod

import structlog

from batch_ocr.batch.models import ImageItem
from batch_ocr.credentials import mask_credential
from batch_ocr.errors import RateLimitedError, TerminalRemoteError
from batch_ocr.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

OCR_PROMPT = (
    "Carefully extract all of the text in this image and present it in order, "
    "preserving its original structure. Return only the extracted text."
)


class RemoteOcrClient(ABC):
    """
    One OCR call for one image with one credential.

    Implementations return the extracted text, or raise:
    - RateLimitedError when the credential is over quota (HTTP 429)
    - TerminalRemoteError for every other failure, including transport
      errors and malformed responses
    They never touch the credential pool or the image.
    """

    backend: str = "remote"

    def extract_text(self, image: ImageItem, credential: str) -> str:
        start_time = time.time()
        outcome = "success"
        try:
            text = self._extract_text(image, credential)
        except RateLimitedError:
            outcome = "rate_limited"
            raise
        except TerminalRemoteError as e:
            outcome = "error"
            logger.warning(
                "ocr_attempt_failed",
                backend=self.backend,
                position=image.position,
                credential=mask_credential(credential),
                status_code=e.status_code,
                error=e.message
            )
            raise
        finally:
            elapsed = time.time() - start_time
            get_metrics().record_attempt(self.backend, outcome, elapsed)

        logger.info(
            "ocr_attempt_complete",
            backend=self.backend,
            position=image.position,
            elapsed_seconds=round(elapsed, 3),
            text_length=len(text)
        )
        return text

    @abstractmethod
    def _extract_text(self, image: ImageItem, credential: str) -> str:
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
