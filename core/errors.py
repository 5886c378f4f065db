"""Error taxonomy shared by the client and the execution pipeline."""

from __future__ import annotations


class PhotoDedupeError(Exception):
    """Base class for all errors raised by this project."""


class TransportError(PhotoDedupeError):
    """Network failure or timeout talking to the photo server."""


class ApiError(PhotoDedupeError):
    """Non-2xx response from the photo server."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"API error {status}: {message}")
        self.status = status
        self.message = message

    def is_already_present(self) -> bool:
        """True for a 400 that only says the assets are already there."""
        text = (self.message or "").lower()
        return self.status == 400 and ("duplicate" in text or "already" in text)


class NotFoundError(ApiError):
    """404 from the photo server."""

    def __init__(self, message: str) -> None:
        super().__init__(404, message)


class ValidationError(PhotoDedupeError):
    """Invalid construction input (URL, API key, configuration values)."""


class BackupDirectoryError(PhotoDedupeError):
    """The backup directory could not be created."""
