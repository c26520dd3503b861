import io

import pytest
from PIL import Image

from batch_ocr.batch import CollectingSink, ImageItem
from batch_ocr.config import get_settings
from batch_ocr.remote.base import RemoteOcrClient


def make_image_bytes(fmt: str = "PNG", size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color=(255, 255, 255)).save(buf, fmt)
    return buf.getvalue()


class ScriptedClient(RemoteOcrClient):
    """
    OCR client that answers from a script instead of the network.

    `script` maps an image position to the list of answers for its calls, in
    order. `default` answers any call the script does not cover. An answer
    is a string (the extracted text), an exception instance (raised), or a
    callable `(image, credential) -> answer`.
    """

    backend = "scripted"

    def __init__(self, script=None, default="text"):
        self.script = {position: list(answers) for position, answers in (script or {}).items()}
        self.default = default
        self.calls = []

    def _extract_text(self, image, credential):
        self.calls.append((image.position, credential))
        answers = self.script.get(image.position)
        answer = answers.pop(0) if answers else self.default
        if callable(answer) and not isinstance(answer, BaseException):
            answer = answer(image, credential)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def credentials_for(self, position):
        return [credential for pos, credential in self.calls if pos == position]


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def make_items(png_bytes):
    def _make(count):
        return [ImageItem(content=png_bytes, mime_type="image/png", position=i, name=f"{i}.png") for i in range(count)]
    return _make


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Settings are cached; tests get a fresh copy without stray API keys."""
    monkeypatch.delenv("API_KEYS", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
