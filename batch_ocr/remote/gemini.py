"""
Gemini generateContent client used as a text extractor.
"""

from dataclasses import dataclass
from typing import List

import requests
import structlog

from batch_ocr.batch.models import ImageItem
from batch_ocr.config import get_settings
from batch_ocr.errors import RateLimitedError, TerminalRemoteError
from batch_ocr.remote.base import OCR_PROMPT, RemoteOcrClient

logger = structlog.get_logger(__name__)

UNKNOWN_ERROR = "Unknown error"


@dataclass
class ModelInfo:
    name: str
    display_name: str

    def to_dict(self) -> dict:
        return {"name": self.name, "display_name": self.display_name}


def _error_message(response: requests.Response) -> str:
    """Pull `error.message` out of an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return UNKNOWN_ERROR
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message") or UNKNOWN_ERROR
    return UNKNOWN_ERROR


def build_request_body(image: ImageItem) -> dict:
    """One fixed prompt plus one inline image."""
    return {
        "contents": [{
            "parts": [
                {"text": OCR_PROMPT},
                {
                    "inline_data": {
                        "mime_type": image.mime_type,
                        "data": image.b64_content()
                    }
                }
            ]
        }]
    }


def parse_text(body) -> str:
    """
    Get the text of the first candidate.

    Raises:
        TerminalRemoteError: If the body does not have the expected shape
    """
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        feedback = body.get("promptFeedback") if isinstance(body, dict) else None
        if feedback and feedback.get("blockReason"):
            raise TerminalRemoteError(f"Request blocked: {feedback['blockReason']}")
        raise TerminalRemoteError("Malformed response: no text candidate")
    if not isinstance(text, str):
        raise TerminalRemoteError("Malformed response: candidate text is not a string")
    return text


class GeminiClient(RemoteOcrClient):
    """
    Extracts text through the Gemini REST API.

    The API key goes in the `x-goog-api-key` header, never in the URL, so it
    does not end up in access logs.
    """

    backend = "gemini"

    def __init__(self, model: str = None, base_url: str = None, timeout: float = None, session: requests.Session = None):
        settings = get_settings()
        self.model = model or settings.gemini.model
        self.base_url = (base_url or settings.gemini.base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout_seconds
        self._session = session or requests.Session()

    @property
    def generate_url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _extract_text(self, image: ImageItem, credential: str) -> str:
        try:
            response = self._session.post(
                self.generate_url,
                headers={"Content-Type": "application/json", "x-goog-api-key": credential},
                json=build_request_body(image),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TerminalRemoteError(f"Request failed: {type(e).__name__}: {e}")

        if response.status_code == 429:
            raise RateLimitedError(_error_message(response))

        if not response.ok:
            raise TerminalRemoteError(_error_message(response), status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise TerminalRemoteError("Malformed response: body is not JSON", status_code=response.status_code)

        return parse_text(body)

    def list_models(self, credential: str) -> List[ModelInfo]:
        """
        List models usable for text extraction.

        Returns:
            Models that support generateContent, without the `models/` prefix
        """
        try:
            response = self._session.get(
                f"{self.base_url}/models",
                headers={"x-goog-api-key": credential},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TerminalRemoteError(f"Request failed: {type(e).__name__}: {e}")

        if response.status_code == 429:
            raise RateLimitedError(_error_message(response))
        if not response.ok:
            raise TerminalRemoteError(_error_message(response), status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise TerminalRemoteError("Malformed response: body is not JSON", status_code=response.status_code)

        models = []
        for entry in body.get("models", []):
            if "generateContent" not in entry.get("supportedGenerationMethods", []):
                continue
            name = entry["name"].replace("models/", "", 1)
            models.append(ModelInfo(name=name, display_name=entry.get("displayName") or entry["name"]))

        logger.info("models_listed", count=len(models))
        return models

    def close(self):
        self._session.close()
