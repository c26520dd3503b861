"""Credential pool module."""

from batch_ocr.credentials.pool import CredentialPool, mask_credential

__all__ = ["CredentialPool", "mask_credential"]
