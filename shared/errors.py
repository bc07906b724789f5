"""
Shared error handling for OIDC discovery metadata.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class DiscoveryError(Exception):
    """Base exception for discovery metadata failures."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(DiscoveryError):
    """Invalid discovery cache or fetcher configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class FetchError(DiscoveryError):
    """A discovery document could not be retrieved or decoded."""

    def __init__(self, code: str, endpoint: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.endpoint = endpoint
        details = dict(details or {})
        details.setdefault("endpoint", endpoint)
        super().__init__(code, message, details)


class TransportError(FetchError):
    """The endpoint was unreachable or answered with a non-success status."""

    def __init__(self, endpoint: str, message: str = "Discovery endpoint unreachable",
                 status_code: Optional[int] = None):
        self.status_code = status_code
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__("TRANSPORT_ERROR", endpoint, message, details)


class MalformedDocument(FetchError):
    """The response could not be decoded into the expected shape."""

    def __init__(self, endpoint: str, message: str = "Malformed discovery document",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_DOCUMENT", endpoint, message, details)


class NoSigningKeys(FetchError):
    """The document decoded but advertises no usable signing key."""

    def __init__(self, endpoint: str, message: str = "Discovery document has no configured signing key"):
        super().__init__("NO_SIGNING_KEYS", endpoint, message)


class MetadataUnavailable(DiscoveryError):
    """No metadata has ever been installed and the refresh attempt failed."""

    def __init__(self, endpoint: str, message: str = "Discovery metadata unavailable"):
        self.endpoint = endpoint
        super().__init__("METADATA_UNAVAILABLE", message, {"endpoint": endpoint})
