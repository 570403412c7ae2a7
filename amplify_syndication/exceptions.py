from __future__ import annotations


class SyndicationError(RuntimeError):
    """Base error for the syndication client."""


class ConfigurationError(SyndicationError):
    """Raised when settings are missing or invalid."""


class HttpError(SyndicationError):
    """Raised for any non-200 response from the resource server."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP Error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class ProtocolError(SyndicationError):
    """Raised when a 200 response does not carry a usable OData payload."""


class ReplicationError(SyndicationError):
    """Raised when a non-empty page fails to move the checkpoint forward."""
