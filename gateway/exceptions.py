"""
Custom exception hierarchy for the Agent Gateway.

Every failure an adapter can surface is tagged with an ErrorKind so the
failover controller can classify it without sniffing messages:
- Configuration errors (missing credential, unknown provider), raised
  before any network call
- Upstream errors (the backend answered with an error status or an
  in-body error)
- Network errors (transport failure, timeout, connection refused)

Usage:
    from gateway.exceptions import UpstreamError, NetworkError

    try:
        response = await client.post(url, json=payload)
    except httpx.TimeoutException as e:
        raise NetworkError("Ollama request timed out", provider="ollama", cause=e) from e
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Tag carried by every GatewayError."""

    CONFIGURATION = "configuration"
    UPSTREAM = "upstream"
    NETWORK = "network"


class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    Carries an HTTP-like status, the provider that produced it and the
    underlying exception (if any). Catch `GatewayError` to handle any
    failure coming out of an adapter.
    """

    kind: ErrorKind = ErrorKind.UPSTREAM
    default_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        provider: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status if status is not None else self.default_status
        self.provider = provider
        self.cause = cause
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "status": self.status,
            "provider": self.provider,
        }


# ── Configuration Errors ──────────────────────────────────────────


class ConfigurationError(GatewayError):
    """
    Raised when a required credential is missing or a provider is unknown.

    Always raised before any network call is made.
    """

    kind = ErrorKind.CONFIGURATION
    default_status = 400


# ── Upstream Errors ───────────────────────────────────────────────


class UpstreamError(GatewayError):
    """
    Raised when a backend reports an error, either through a non-2xx
    status or through an error field in the response body.

    `status` mirrors the backend's HTTP status.
    """

    kind = ErrorKind.UPSTREAM


# ── Network Errors ────────────────────────────────────────────────


class NetworkError(GatewayError):
    """
    Raised on transport-level failures: timeouts, resets, DNS failures.

    There is no backend status to mirror, so `status` defaults to 500.
    """

    kind = ErrorKind.NETWORK


class ConnectionRefusedNetworkError(NetworkError):
    """
    The backend actively refused the connection.

    Typical for a local Ollama daemon that is not running.
    """
