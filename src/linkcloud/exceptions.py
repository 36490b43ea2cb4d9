"""Custom exception hierarchy for linkcloud.

This module defines the exceptions raised by the gateway core. Every failure
a client can observe is a GatewayError subclass tagged with an ErrorKind,
the fixed taxonomy shared by all storage backends. None of these classes
knows anything about HTTP; translating a kind to a transport status is the
router's job.

All exceptions inherit from LinkCloudError for easy catching and handling.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Uniform failure categories surfaced by the gateway core."""

    MISSING_AUTH = "MissingAuth"
    MALFORMED_AUTH = "MalformedAuth"
    UNSUPPORTED_PROVIDER = "UnsupportedProvider"
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    BACKEND_INTERNAL = "BackendInternal"


class LinkCloudError(Exception):
    """Base exception for all linkcloud errors.

    All custom exceptions in linkcloud inherit from this base class,
    allowing callers to catch all tool-specific errors with a single handler.

    Attributes:
        message: Human-readable error message
        **kwargs: Additional context stored as attributes
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        """Initialize exception with message and optional context.

        Args:
            message: Human-readable error description
            **kwargs: Additional context (e.g., provider, container, blob)
        """
        super().__init__(message)
        self.message = message

        # Store all kwargs as instance attributes for context
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class ConfigurationError(LinkCloudError):
    """Raised when configuration is invalid or missing.

    Common scenarios:
    - Invalid YAML syntax
    - Missing required fields
    - Duplicate provider names
    - Unknown backend type
    - Failed environment variable substitution
    """

    pass


class GatewayError(LinkCloudError):
    """Base class for failures reported to gateway clients.

    Subclasses pin ``kind`` to one member of ErrorKind. The router maps
    that kind, and only that kind, to a response status.
    """

    kind: Optional[ErrorKind] = None


class MissingAuthError(GatewayError):
    """Raised when a request carries no credential token."""

    kind = ErrorKind.MISSING_AUTH


class MalformedAuthError(GatewayError):
    """Raised when the credential token is present but unusable.

    Common scenarios:
    - Scheme other than ``Basic``
    - Payload that is not valid base64
    - Decoded text without a ``username:password`` pair
    """

    kind = ErrorKind.MALFORMED_AUTH


class UnsupportedProviderError(GatewayError):
    """Raised when the requested provider name is not registered.

    Attributes:
        provider: The provider name that failed to resolve
    """

    kind = ErrorKind.UNSUPPORTED_PROVIDER

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, provider=provider, **kwargs)


class InvalidInputError(GatewayError):
    """Raised when a name or parameter fails backend syntax rules.

    Common scenarios:
    - Container or blob name rejected by the backend naming rules
    - Storage account name with illegal characters
    - Account key that is not valid base64
    - Missing or non-numeric declared content length
    """

    kind = ErrorKind.INVALID_INPUT


class NotFoundError(GatewayError):
    """Raised when an addressed container or blob does not exist."""

    kind = ErrorKind.NOT_FOUND


class BackendInternalError(GatewayError):
    """Raised for any other backend failure.

    Common scenarios:
    - Transport errors talking to the remote service
    - Unexpected SDK exceptions
    - Enumeration failing partway through a listing
    - Upload stream shorter or longer than its declared length
    """

    kind = ErrorKind.BACKEND_INTERNAL
