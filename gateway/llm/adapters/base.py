"""
Base class for provider adapters.

An adapter is the only place that knows a backend's wire format. It
resolves credentials and endpoint, turns the unified message list into
the backend payload, issues the call and normalizes the answer into a
CanonicalCompletion. Every failure leaves an adapter as a GatewayError.

Routing concerns (affinity, metrics, failover) live outside the adapters
and are shared across all of them; see gateway.llm.router.
"""

from __future__ import annotations

import abc
import errno
import logging
from dataclasses import replace
from typing import Any, Mapping, Optional

import httpx

from gateway.config.providers import ProviderSettings
from gateway.exceptions import (
    ConfigurationError,
    ConnectionRefusedNetworkError,
    NetworkError,
)
from gateway.llm.models import CanonicalCompletion, ProviderConfig, ResolvedConfig

logger = logging.getLogger(__name__)


def is_connection_refused(exc: BaseException) -> bool:
    """Walk the exception chain looking for a refused TCP connection."""
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ConnectionRefusedError):
            return True
        if isinstance(current, OSError) and current.errno == errno.ECONNREFUSED:
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def body_error_message(body: Any) -> Optional[str]:
    """
    Pull a human-readable message out of an error body.

    Handles `{"error": {"message": ...}}`, `{"message": ...}` and
    Ollama's `{"error": "..."}`.
    """
    if not isinstance(body, Mapping):
        return None
    error = body.get("error", body)
    if isinstance(error, str):
        return error or None
    if isinstance(error, Mapping):
        message = error.get("message")
        if message:
            return str(message)
    return None


class ProviderAdapter(abc.ABC):
    """
    Strategy interface implemented once per backend protocol.

    Args:
        settings: Static provider settings (endpoints, env names, timeout).
        transport: Optional httpx transport used for every HTTP call the
                   adapter makes, including those issued through an SDK.
    """

    label: str = ""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    @property
    def name(self) -> str:
        return self.settings.name

    # --- Configuration ---

    def normalize_endpoint(self, endpoint: str) -> str:
        return endpoint.strip().rstrip("/")

    def resolve_config(
        self,
        provider_config: Optional[ProviderConfig] = None,
        endpoint_override: Optional[str] = None,
    ) -> ResolvedConfig:
        """Per-call value → environment → built-in default."""
        provider_config = provider_config or ProviderConfig()
        key = provider_config.key or self.settings.env_key()
        endpoint = (
            endpoint_override
            or provider_config.endpoint
            or self.settings.env_endpoint()
            or self.settings.default_endpoint
        )
        return ResolvedConfig(key=key, endpoint=self.normalize_endpoint(endpoint))

    def instance_key(self, resolved: ResolvedConfig) -> str:
        """Stable id for a (credential prefix, endpoint) pair."""
        return f"{self.settings.instance_prefix}_{(resolved.key or '')[:8]}...{resolved.endpoint}"

    def require_key(self, resolved: ResolvedConfig) -> None:
        if self.settings.requires_key and not resolved.key:
            raise ConfigurationError(
                f"{self.label} API key not configured. Please set "
                f"{self.settings.api_key_env} in .env or provide it in settings.",
                provider=self.name,
            )

    def fallback_config(self, primary: ResolvedConfig) -> Optional[ResolvedConfig]:
        """
        The failover configuration, or None when the environment offers
        nothing different from `primary`.
        """
        key = self.settings.fallback_key() or primary.key
        endpoint = self.settings.fallback_endpoint()
        endpoint = self.normalize_endpoint(endpoint) if endpoint else primary.endpoint
        if key == primary.key and endpoint == primary.endpoint:
            return None
        return replace(primary, key=key, endpoint=endpoint)

    # --- Clients ---

    def create_client(self, resolved: ResolvedConfig) -> Any:
        """
        Build a long-lived client for `resolved`, or None when the
        backend is called with a fresh HTTP client each time.
        """
        return None

    async def close_client(self, client: Any) -> None:
        close = getattr(client, "close", None)
        if close is not None:
            await close()

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.timeout_seconds,
            transport=self._transport,
        )

    # --- Errors ---

    def network_error(self, exc: BaseException, message: Optional[str] = None) -> NetworkError:
        cls = ConnectionRefusedNetworkError if is_connection_refused(exc) else NetworkError
        return cls(
            message or f"{self.label} request failed: {exc}",
            provider=self.name,
            cause=exc,
        )

    # --- Abstract API ---

    @abc.abstractmethod
    def build_payload(
        self,
        messages: list[dict[str, Any]],
        model: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Translate the unified request into the backend's request body."""

    @abc.abstractmethod
    async def execute(
        self,
        messages: list[dict[str, Any]],
        model: str,
        resolved: ResolvedConfig,
        params: Optional[dict[str, Any]] = None,
        client: Any = None,
    ) -> CanonicalCompletion:
        """Issue one completion call and normalize the response."""

    @abc.abstractmethod
    async def list_models(
        self,
        resolved: ResolvedConfig,
        client: Any = None,
    ) -> list[dict[str, Any]]:
        """Models available from this backend, as `{"id", "name", ...}` dicts."""
