"""
OpenRouter adapter.

OpenRouter speaks the OpenAI chat protocol, so this reuses the OpenAI
adapter and only adds the two identification headers OpenRouter
requires on every call:

    HTTP-Referer: config.referer → OPENROUTER_REFERER → http://localhost:3000
    X-Title:      config.title   → OPENROUTER_TITLE   → Chat Framework
"""

from __future__ import annotations

import os
from typing import Any, Optional

import httpx

from gateway.config.providers import (
    OPENROUTER,
    OPENROUTER_DEFAULT_REFERER,
    OPENROUTER_DEFAULT_TITLE,
    ProviderSettings,
)
from gateway.llm.adapters.openai_adapter import OpenAIAdapter
from gateway.llm.models import ProviderConfig, ResolvedConfig


class OpenRouterAdapter(OpenAIAdapter):
    label = "OpenRouter"
    STATUS_MESSAGES: dict[int, str] = {}

    def __init__(
        self,
        settings: ProviderSettings = OPENROUTER,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings, transport=transport)

    def resolve_config(
        self,
        provider_config: Optional[ProviderConfig] = None,
        endpoint_override: Optional[str] = None,
    ) -> ResolvedConfig:
        provider_config = provider_config or ProviderConfig()
        resolved = super().resolve_config(provider_config, endpoint_override)
        return ResolvedConfig(
            key=resolved.key,
            endpoint=resolved.endpoint,
            referer=(
                provider_config.referer
                or os.environ.get("OPENROUTER_REFERER")
                or OPENROUTER_DEFAULT_REFERER
            ),
            title=(
                provider_config.title
                or os.environ.get("OPENROUTER_TITLE")
                or OPENROUTER_DEFAULT_TITLE
            ),
        )

    def default_headers(self, resolved: ResolvedConfig) -> dict[str, str]:
        return {
            "HTTP-Referer": resolved.referer or OPENROUTER_DEFAULT_REFERER,
            "X-Title": resolved.title or OPENROUTER_DEFAULT_TITLE,
        }

    def filter_models(self, models: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return sorted(models, key=lambda m: m.get("name") or m["id"])
