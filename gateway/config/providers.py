"""
Provider Configuration - per-backend defaults and environment bindings.

Defines, for each supported backend, which environment variables carry
its credentials and endpoint, where it lives by default, which variables
hold the failover configuration, and how long a call may take.

Usage:
    from gateway.config.providers import DEFAULT_PROVIDERS, provider_for_model

    settings = DEFAULT_PROVIDERS["ollama"]
    settings.default_endpoint   # → "http://localhost:11434"

    provider_for_model("claude-3-5-haiku-20241022")  # → "anthropic"
    provider_for_model("google/gemini-pro")          # → "openrouter"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Provider Names
# ---------------------------------------------------------------------------

class ProviderName(str, Enum):
    """Supported upstream protocols."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    OPENROUTER = "openrouter"


# ---------------------------------------------------------------------------
# Provider Settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderSettings:
    """Static configuration for one backend."""

    name: str
    default_endpoint: str
    api_key_env: Optional[str] = None        # None: backend needs no key
    endpoint_env: Optional[str] = None
    fallback_key_env: Optional[str] = None
    fallback_endpoint_env: Optional[str] = None
    default_fallback_endpoint: Optional[str] = None
    timeout_seconds: float = 30.0
    max_retries: int = 0                     # SDK-internal retries only
    requires_key: bool = True

    @property
    def instance_prefix(self) -> str:
        return self.name

    def env_key(self) -> Optional[str]:
        """API key from the environment, if this backend uses one."""
        if not self.api_key_env:
            return None
        return os.environ.get(self.api_key_env) or None

    def env_endpoint(self) -> Optional[str]:
        if not self.endpoint_env:
            return None
        return os.environ.get(self.endpoint_env) or None

    def fallback_key(self) -> Optional[str]:
        if not self.fallback_key_env:
            return None
        return os.environ.get(self.fallback_key_env) or None

    def fallback_endpoint(self) -> Optional[str]:
        if self.fallback_endpoint_env:
            value = os.environ.get(self.fallback_endpoint_env)
            if value:
                return value
        return self.default_fallback_endpoint

    def with_overrides(self, **overrides: Any) -> "ProviderSettings":
        """Copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


# ---------------------------------------------------------------------------
# Default Provider Table
# ---------------------------------------------------------------------------

OPENAI = ProviderSettings(
    name=ProviderName.OPENAI.value,
    default_endpoint="https://api.openai.com/v1",
    api_key_env="OPENAI_API_KEY",
    fallback_key_env="OPENAI_API_KEY_FALLBACK",
    fallback_endpoint_env="OPENAI_ENDPOINT_FALLBACK",
    timeout_seconds=30.0,
    max_retries=2,
)

ANTHROPIC = ProviderSettings(
    name=ProviderName.ANTHROPIC.value,
    default_endpoint="https://api.anthropic.com",
    api_key_env="ANTHROPIC_API_KEY",
    fallback_key_env="ANTHROPIC_API_KEY_FALLBACK",
    fallback_endpoint_env="ANTHROPIC_ENDPOINT_FALLBACK",
    timeout_seconds=30.0,
)

OLLAMA = ProviderSettings(
    name=ProviderName.OLLAMA.value,
    default_endpoint="http://localhost:11434",
    endpoint_env="OLLAMA_ENDPOINT",
    fallback_endpoint_env="OLLAMA_ENDPOINT_FALLBACK",
    default_fallback_endpoint="http://localhost:11435",
    timeout_seconds=30.0,
    requires_key=False,
)

OPENROUTER = ProviderSettings(
    name=ProviderName.OPENROUTER.value,
    default_endpoint="https://openrouter.ai/api/v1",
    api_key_env="OPENROUTER_API_KEY",
    fallback_key_env="OPENROUTER_API_KEY_FALLBACK",
    fallback_endpoint_env="OPENROUTER_ENDPOINT_FALLBACK",
    timeout_seconds=30.0,
)

DEFAULT_PROVIDERS: dict[str, ProviderSettings] = {
    s.name: s for s in (OPENAI, ANTHROPIC, OLLAMA, OPENROUTER)
}

# OpenRouter identification headers
OPENROUTER_DEFAULT_REFERER = "http://localhost:3000"
OPENROUTER_DEFAULT_TITLE = "Chat Framework"


# ---------------------------------------------------------------------------
# Model → Provider Inference
# ---------------------------------------------------------------------------

def provider_for_model(model: Optional[str]) -> str:
    """
    Infer the backend from a model id.

    claude-*/anthropic/* → anthropic, gpt-*/openai/* → openai, any other
    namespaced id (vendor/model) → openrouter, everything else is
    assumed to be a local Ollama model.
    """
    if not model:
        return ProviderName.OPENAI.value
    if model.startswith("claude-") or model.startswith("anthropic/"):
        return ProviderName.ANTHROPIC.value
    if model.startswith("gpt-") or model.startswith("openai/"):
        return ProviderName.OPENAI.value
    if "/" in model:
        return ProviderName.OPENROUTER.value
    return ProviderName.OLLAMA.value
