"""Typed errors raised by the generation clients and the content store.

Every error carries a ``kind`` so a failure can be recorded on an item as a
``MediaFailure`` without keeping the exception object around.
"""

from typing import Optional


class KiddoError(Exception):
    """Base class for all pipeline errors."""

    kind = "service"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(KiddoError):
    """Required credentials or settings are missing."""

    kind = "config"


class ServiceError(KiddoError):
    """A generation service answered with a non-success response."""

    kind = "service"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status {self.status_code})"


class ImageJobError(ServiceError):
    """The image job reached the ``failed`` or ``canceled`` status."""

    def __init__(self, status: str, reason: Optional[str] = None):
        super().__init__(f"Image generation {status}: {reason or 'Unknown reason'}")
        self.status = status
        self.kind = status


class GenerationTimeoutError(KiddoError, TimeoutError):
    """The image job did not reach a terminal status before its timeout."""

    kind = "timed_out"


class StorageError(KiddoError):
    """Generated media or records could not be saved or loaded."""

    kind = "storage"


class DecodeError(KiddoError):
    """The audio payload could not be decoded."""

    kind = "decode"
