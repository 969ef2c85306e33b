"""Exceptions raised by the key pool."""

from typing import Any, List, Optional


class KeyPoolError(Exception):
    """Base class for key pool errors."""


class PoolExhaustedError(KeyPoolError):
    """No active key with remaining quota is available."""

    def __init__(self, message: str = "No available API keys"):
        super().__init__(message)


class TransientStoreContentionError(KeyPoolError):
    """The credential store rejected an operation due to a write conflict."""


class ConfigurationMissingError(KeyPoolError, ValueError):
    """A required configuration value is not set."""


class DecryptionFailedError(KeyPoolError):
    """A stored secret could not be decrypted or failed authentication."""


class YouTubeApiError(Exception):
    """Non-2xx response from the YouTube Data API."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        reasons: Optional[List[str]] = None,
        payload: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.reasons = reasons or []
        self.payload = payload
        super().__init__(f"YouTube API error {status_code}: {message}")


class QuotaExceededError(YouTubeApiError):
    """The key used for the call has run out of daily quota."""
