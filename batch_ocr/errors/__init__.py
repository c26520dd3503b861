"""Custom exception classes for the batch OCR pipeline."""


class OCRError(Exception):
    """Base exception for batch OCR errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EmptyPoolError(OCRError):
    """No active credentials are configured."""

    def __init__(self, message: str = "No active API keys configured"):
        super().__init__(message)


class RemoteOcrError(OCRError):
    """Error from the remote OCR service."""

    def __init__(self, message: str, status_code: int = None, details: dict = None):
        super().__init__(message, details)
        self.status_code = status_code


class RateLimitedError(RemoteOcrError):
    """The credential used for the call has exhausted its quota."""

    def __init__(self, message: str = "Rate limit exceeded", status_code: int = 429, details: dict = None):
        super().__init__(message, status_code, details)


class TerminalRemoteError(RemoteOcrError):
    """Any remote failure that switching credentials will not fix."""
    pass


class CredentialsExhaustedError(OCRError):
    """Every active credential was rate limited for the same image."""

    def __init__(self, attempts: int):
        super().__init__(
            "All API keys are rate limited. Please wait a moment and try again.",
            {"attempts": attempts}
        )
        self.attempts = attempts


class BatchInProgressError(OCRError):
    """A batch is already running on this processor."""

    def __init__(self, message: str = "A batch is already being processed"):
        super().__init__(message)


class InvalidTransitionError(OCRError):
    """Item outcome moved backwards or out of order."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move item from {current} to {target}",
            {"current": current, "target": target}
        )


class InvalidImageError(OCRError):
    """Invalid or corrupted image."""
    pass


class ImageTooLargeError(OCRError):
    """Image exceeds size limit."""

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            f"Image size {size_bytes} bytes exceeds maximum {max_bytes} bytes",
            {"size_bytes": size_bytes, "max_bytes": max_bytes}
        )
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class UnsupportedFormatError(OCRError):
    """Unsupported image format."""

    def __init__(self, format: str, supported_formats: list):
        super().__init__(
            f"Format '{format}' not supported. Supported: {supported_formats}",
            {"format": format, "supported_formats": supported_formats}
        )


class BatchTooLargeError(OCRError):
    """Too many images submitted in one batch."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            f"Batch of {size} images exceeds maximum of {max_size}",
            {"size": size, "max_size": max_size}
        )
        self.size = size
        self.max_size = max_size
