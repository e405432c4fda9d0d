"""Domain exception hierarchy for the codebase chat client."""

from __future__ import annotations


class ChatClientError(RuntimeError):
    """Base class for all domain-level chat errors."""


class StorageError(ChatClientError):
    """Raised when durable thread state cannot be read or written."""


class TransportError(ChatClientError):
    """Raised when the completion endpoint answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(ChatClientError):
    """Raised when the completion request could not be completed at all."""


class ConfigValidationError(ChatClientError):
    """Raised when configuration cannot be validated safely."""
