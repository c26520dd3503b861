"""
Batch data model: images, per-image outcomes and the batch run that owns them.
"""

import base64
import binascii
import io
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from PIL import Image, UnidentifiedImageError

from batch_ocr.errors import (
    InvalidImageError,
    InvalidTransitionError,
    UnsupportedFormatError,
)

SUPPORTED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
    "image/gif",
    "image/bmp",
    "image/tiff",
}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+)(?P<params>(;[^;,]+)*),(?P<data>.*)$", re.DOTALL)


def sniff_mime_type(content: bytes) -> str:
    """
    Detect the MIME type of image bytes using Pillow.

    Raises:
        InvalidImageError: If the bytes are not a readable image
        UnsupportedFormatError: If the format is not accepted by the OCR backends
    """
    if not content:
        raise InvalidImageError("Empty image")
    try:
        with Image.open(io.BytesIO(content)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Unreadable image: {e}")

    mime_type = Image.MIME.get(fmt or "")
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise UnsupportedFormatError(fmt or "unknown", sorted(SUPPORTED_MIME_TYPES))
    return mime_type


@dataclass(frozen=True)
class ImageItem:
    """One image to extract text from. Immutable once created."""

    content: bytes
    mime_type: str
    position: int
    name: str = ""

    @classmethod
    def from_bytes(cls, content: bytes, position: int, name: str = "") -> "ImageItem":
        return cls(content=content, mime_type=sniff_mime_type(content), position=position, name=name)

    @classmethod
    def from_path(cls, path: Union[str, Path], position: int) -> "ImageItem":
        path = Path(path)
        with open(path, "rb") as f:
            content = f.read()
        return cls.from_bytes(content, position, name=path.name)

    @classmethod
    def from_data_url(cls, data_url: str, position: int, name: str = "") -> "ImageItem":
        """Build an item from a `data:<mime>;base64,<data>` URL."""
        match = _DATA_URL_RE.match(data_url.strip())
        if not match or ";base64" not in (match.group("params") or ""):
            raise InvalidImageError("Not a base64 data URL")

        mime_type = match.group("mime").lower()
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise UnsupportedFormatError(mime_type, sorted(SUPPORTED_MIME_TYPES))
        try:
            content = base64.b64decode(match.group("data"), validate=True)
        except binascii.Error as e:
            raise InvalidImageError(f"Invalid base64 data: {e}")
        if not content:
            raise InvalidImageError("Empty image")
        return cls(content=content, mime_type=mime_type, position=position, name=name)

    @property
    def label(self) -> str:
        """Display label, 1-based."""
        return f"Image {self.position + 1}"

    def b64_content(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def __repr__(self) -> str:
        return (
            f"ImageItem(position={self.position}, name={self.name!r}, "
            f"mime_type={self.mime_type!r}, size={len(self.content)})"
        )


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCEEDED, ItemStatus.FAILED)


class FailureKind(str, Enum):
    REMOTE_ERROR = "remote_error"
    CREDENTIALS_EXHAUSTED = "credentials_exhausted"


_ALLOWED = {
    ItemStatus.PENDING: {ItemStatus.IN_PROGRESS},
    ItemStatus.IN_PROGRESS: {ItemStatus.SUCCEEDED, ItemStatus.FAILED},
    ItemStatus.SUCCEEDED: set(),
    ItemStatus.FAILED: set(),
}


@dataclass
class ItemOutcome:
    """Processing state of one image. Only moves forward."""

    status: ItemStatus = ItemStatus.PENDING
    text: Optional[str] = None
    reason: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    attempts: int = 0

    def _move(self, target: ItemStatus):
        if target not in _ALLOWED[self.status]:
            raise InvalidTransitionError(self.status.value, target.value)
        self.status = target

    def start(self):
        self._move(ItemStatus.IN_PROGRESS)

    def succeed(self, text: str):
        self._move(ItemStatus.SUCCEEDED)
        self.text = text

    def fail(self, reason: str, kind: FailureKind):
        self._move(ItemStatus.FAILED)
        self.reason = reason
        self.failure_kind = kind

    @property
    def display_text(self) -> str:
        if self.status == ItemStatus.SUCCEEDED:
            return self.text or ""
        if self.status == ItemStatus.FAILED:
            if self.failure_kind == FailureKind.REMOTE_ERROR:
                return f"Error: {self.reason}"
            return self.reason or ""
        return ""

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "text": self.text,
            "reason": self.reason,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "attempts": self.attempts,
        }


class BatchStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"


@dataclass
class BatchRun:
    """
    Images submitted together and their outcomes.

    The run is the only owner of its outcomes; re-submitting the same images
    creates a new run with fresh `PENDING` outcomes.
    """

    items: List[ImageItem]
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: BatchStatus = BatchStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    outcomes: Dict[int, ItemOutcome] = field(default_factory=dict)

    def __post_init__(self):
        self.items = sorted(self.items, key=lambda item: item.position)
        positions = [item.position for item in self.items]
        if len(set(positions)) != len(positions):
            raise ValueError("Image positions must be unique within a batch")
        self.outcomes = {item.position: ItemOutcome() for item in self.items}

    def outcome(self, item: ImageItem) -> ItemOutcome:
        return self.outcomes[item.position]

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for o in self.outcomes.values() if o.status == status)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return self._count(ItemStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(ItemStatus.FAILED)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def progress(self) -> float:
        return self.processed / self.total if self.total else 1.0

    def combined_text(self) -> str:
        """All results as one text, one `--- Image N ---` block per image."""
        return "\n\n".join(
            f"--- {item.label} ---\n{self.outcome(item).display_text}"
            for item in self.items
        )

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_images": self.total,
            "processed_images": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "progress": self.progress,
            "items": [
                {"position": item.position, "name": item.name, **self.outcome(item).to_dict()}
                for item in self.items
            ],
        }
