"""Tests for custom exception hierarchy."""

import pytest

from linkcloud.exceptions import (
    BackendInternalError,
    ConfigurationError,
    ErrorKind,
    GatewayError,
    InvalidInputError,
    LinkCloudError,
    MalformedAuthError,
    MissingAuthError,
    NotFoundError,
    UnsupportedProviderError,
)


class TestExceptionHierarchy:
    """Test suite for custom exception hierarchy."""

    def test_base_exception_is_linkcloud_error(self):
        """Test that base exception is LinkCloudError."""
        error = LinkCloudError("Test error")
        assert isinstance(error, Exception)
        assert str(error) == "Test error"

    def test_configuration_error_is_not_a_gateway_error(self):
        """Test that configuration problems stay outside the client taxonomy."""
        error = ConfigurationError("Invalid config")
        assert isinstance(error, LinkCloudError)
        assert not isinstance(error, GatewayError)

    @pytest.mark.parametrize(
        "error_class,kind",
        [
            (MissingAuthError, ErrorKind.MISSING_AUTH),
            (MalformedAuthError, ErrorKind.MALFORMED_AUTH),
            (UnsupportedProviderError, ErrorKind.UNSUPPORTED_PROVIDER),
            (InvalidInputError, ErrorKind.INVALID_INPUT),
            (NotFoundError, ErrorKind.NOT_FOUND),
            (BackendInternalError, ErrorKind.BACKEND_INTERNAL),
        ],
    )
    def test_each_gateway_error_carries_its_kind(self, error_class, kind):
        """Test that every gateway error is tagged with exactly one kind."""
        error = error_class("failure")
        assert isinstance(error, GatewayError)
        assert error.kind is kind

    def test_error_kind_values_are_stable_names(self):
        """Test that kind values are the names reported to clients."""
        assert [kind.value for kind in ErrorKind] == [
            "MissingAuth",
            "MalformedAuth",
            "UnsupportedProvider",
            "InvalidInput",
            "NotFound",
            "BackendInternal",
        ]


class TestExceptionContext:
    """Test suite for exception context attributes."""

    def test_kwargs_are_stored_as_attributes(self):
        """Test that keyword context becomes instance attributes."""
        error = NotFoundError("Blob pics/a.jpg not found", container="pics", blob="a.jpg")
        assert error.container == "pics"
        assert error.blob == "a.jpg"
        assert error.message == "Blob pics/a.jpg not found"

    def test_unsupported_provider_records_provider(self):
        """Test that UnsupportedProviderError keeps the requested name."""
        error = UnsupportedProviderError("Provider 'dropbox' is not supported", provider="dropbox")
        assert error.provider == "dropbox"

    def test_catch_all_gateway_errors(self):
        """Test that all client-facing errors can be caught together."""
        with pytest.raises(GatewayError):
            raise InvalidInputError("Invalid container name X")
