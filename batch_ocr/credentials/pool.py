"""
API key pool with a shared rotation cursor.
"""

from typing import Iterable, List, Optional

import structlog

from batch_ocr.errors import EmptyPoolError

logger = structlog.get_logger(__name__)


def mask_credential(credential: str) -> str:
    """Return a loggable form of a credential showing only its last 4 characters."""
    if len(credential) <= 4:
        return "****"
    return f"****{credential[-4:]}"


class CredentialPool:
    """
    Ordered set of interchangeable API keys.

    The pool owns the rotation cursor used to pick the key for the next
    remote call. The cursor only moves on `advance()` and lives as long as
    the pool, so a key found to be rate limited while processing one image
    stays skipped for the images after it.

    Empty entries are kept in the configured list (so indexes used by the
    key-management side stay stable) but are never handed out.
    """

    def __init__(self, credentials: Optional[Iterable[str]] = None):
        self._credentials: List[str] = [c.strip() for c in (credentials or [])]
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def credentials(self) -> List[str]:
        """Configured credentials, including empty entries."""
        return list(self._credentials)

    def active_credentials(self) -> List[str]:
        """
        Get the non-empty credentials, in configured order.

        Raises:
            EmptyPoolError: If no non-empty credential is configured
        """
        active = [c for c in self._credentials if c]
        if not active:
            raise EmptyPoolError()
        return active

    def current(self) -> str:
        """Credential under the rotation cursor."""
        active = self.active_credentials()
        return active[self._cursor % len(active)]

    def advance(self) -> str:
        """Move the cursor to the next active credential and return it."""
        active = self.active_credentials()
        previous = active[self._cursor % len(active)]
        self._cursor = (self._cursor + 1) % len(active)
        logger.info(
            "credential_rotated",
            previous=mask_credential(previous),
            cursor=self._cursor,
            pool_size=len(active)
        )
        return active[self._cursor]

    def is_empty(self) -> bool:
        return not any(self._credentials)

    def __len__(self) -> int:
        return sum(1 for c in self._credentials if c)

    # Key management

    def add(self, credential: str):
        self._credentials.append(credential.strip())

    def replace(self, index: int, credential: str):
        self._credentials[index] = credential.strip()

    def remove(self, index: int) -> str:
        return self._credentials.pop(index)

    def set_credentials(self, credentials: Iterable[str]):
        """Replace the whole list. The cursor keeps its value."""
        self._credentials = [c.strip() for c in credentials]
        logger.info("credentials_updated", pool_size=len(self))

    def masked(self) -> List[str]:
        return [mask_credential(c) for c in self._credentials if c]
