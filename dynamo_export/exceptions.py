"""Custom exception hierarchy for the table export engine."""

from __future__ import annotations


class ExportError(Exception):
    """Base exception for all export-related errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ExportError):
    """Raised when configuration is missing or invalid."""
    pass


class SinkConfigurationError(ConfigurationError):
    """Raised when no output target, or more than one, is configured."""
    pass


class FetchError(ExportError):
    """Raised when a page request fails or returns a malformed response."""
    pass


class AuthenticationError(FetchError):
    """Raised when the store rejects or cannot find credentials."""
    pass


class MalformedItemError(ExportError):
    """Raised when an item carries an unrecognized type tag."""
    pass


class TransformError(ExportError):
    """Raised when the user-supplied row hook fails."""
    pass


class SinkError(ExportError):
    """Raised when writing to the output target fails."""
    pass


class ExtractionCancelledError(ExportError):
    """Raised when a run is cancelled before it is exhausted."""
    pass
