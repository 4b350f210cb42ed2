"""
Unit tests for the custom exception hierarchy.

Validates exception creation, inheritance, kind tags and default statuses.
"""

import pytest

from gateway.exceptions import (
    ConfigurationError,
    ConnectionRefusedNetworkError,
    ErrorKind,
    GatewayError,
    NetworkError,
    UpstreamError,
)


class TestGatewayError:
    """Tests for the base exception class."""

    def test_basic_creation(self):
        err = GatewayError("something broke")
        assert str(err) == "something broke"
        assert err.message == "something broke"
        assert err.details == {}
        assert err.status == 500
        assert err.provider is None
        assert err.cause is None

    def test_with_details(self):
        err = GatewayError("oops", details={"code": 42})
        assert err.details["code"] == 42

    def test_stores_cause(self):
        cause = RuntimeError("socket closed")
        err = GatewayError("wrapped", cause=cause)
        assert err.cause is cause

    def test_is_exception(self):
        assert issubclass(GatewayError, Exception)

    def test_to_dict(self):
        err = UpstreamError("rate limited", status=429, provider="openai")
        assert err.to_dict() == {
            "error": "rate limited",
            "kind": "upstream",
            "status": 429,
            "provider": "openai",
        }


class TestConfigurationError:
    """Tests for missing credentials and unknown providers."""

    def test_kind_and_status(self):
        err = ConfigurationError("OpenAI API key not configured.")
        assert err.kind is ErrorKind.CONFIGURATION
        assert err.status == 400

    def test_catchable_as_gateway_error(self):
        with pytest.raises(GatewayError):
            raise ConfigurationError("unknown provider", provider="bedrock")


class TestUpstreamError:
    """Tests for backend-reported errors."""

    def test_status_mirrors_backend(self):
        err = UpstreamError("overloaded", status=529, provider="anthropic")
        assert err.status == 529
        assert err.kind is ErrorKind.UPSTREAM

    def test_defaults_to_500(self):
        assert UpstreamError("boom").status == 500


class TestNetworkError:
    """Tests for transport-level errors."""

    def test_kind_and_default_status(self):
        err = NetworkError("timed out", provider="ollama")
        assert err.kind is ErrorKind.NETWORK
        assert err.status == 500

    def test_connection_refused_is_network_error(self):
        err = ConnectionRefusedNetworkError("refused", provider="ollama")
        assert isinstance(err, NetworkError)
        assert err.kind is ErrorKind.NETWORK

    def test_not_an_upstream_error(self):
        assert not issubclass(NetworkError, UpstreamError)
