"""
Anthropic adapter.

Calls the Messages API through the official async SDK:

    POST {base_url}/v1/messages
    x-api-key: <key>
    anthropic-version: 2023-06-01
    {"model", "max_tokens", "messages", "system"?, "temperature"?, "top_p"?}

Anthropic differs from the OpenAI shape in three ways the payload
builder has to absorb:
- the system prompt is a top-level field, never a message
- messages may only be user/assistant turns, and there must be at least one
- max_tokens is mandatory (4096 when the caller didn't set it)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import anthropic
import httpx

from gateway.config.providers import ANTHROPIC, ProviderSettings
from gateway.exceptions import UpstreamError
from gateway.llm.adapters.base import ProviderAdapter, body_error_message
from gateway.llm.models import CanonicalCompletion, ResolvedConfig

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096
PLACEHOLDER_USER_MESSAGE = {"role": "user", "content": "Understood."}

# Served without a network call
ANTHROPIC_MODELS: list[dict[str, str]] = [
    {"id": "claude-3-5-sonnet-20241022", "name": "Claude 3.5 Sonnet"},
    {"id": "claude-3-5-haiku-20241022", "name": "Claude 3.5 Haiku"},
    {"id": "claude-3-opus-20240229", "name": "Claude 3 Opus"},
    {"id": "claude-3-sonnet-20240229", "name": "Claude 3 Sonnet"},
    {"id": "claude-3-haiku-20240307", "name": "Claude 3 Haiku"},
]


class AnthropicAdapter(ProviderAdapter):
    label = "Anthropic"

    def __init__(
        self,
        settings: ProviderSettings = ANTHROPIC,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings, transport=transport)

    def create_client(self, resolved: ResolvedConfig) -> anthropic.AsyncAnthropic:
        self.require_key(resolved)
        return anthropic.AsyncAnthropic(
            api_key=resolved.key,
            base_url=resolved.endpoint,
            timeout=self.settings.timeout_seconds,
            max_retries=self.settings.max_retries,
            default_headers={"anthropic-version": ANTHROPIC_VERSION},
            http_client=self._http_client() if self._transport else None,
        )

    def build_payload(
        self,
        messages: list[dict[str, Any]],
        model: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        params = params or {}
        system = next((m.get("content", "") for m in messages if m.get("role") == "system"), None)
        conversation = [
            {
                "role": "assistant" if m.get("role") == "assistant" else "user",
                "content": m.get("content", ""),
            }
            for m in messages
            if m.get("role") != "system"
        ]
        # The API rejects an empty message list
        if not conversation:
            conversation.append(dict(PLACEHOLDER_USER_MESSAGE))

        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": params.get("max_tokens") or DEFAULT_MAX_TOKENS,
            "messages": conversation,
        }
        # Only the first system message is sent; later ones are dropped
        if system is not None:
            payload["system"] = system
        if params.get("temperature") is not None:
            payload["temperature"] = params["temperature"]
        if params.get("top_p") is not None:
            payload["top_p"] = params["top_p"]
        return payload

    def normalize(self, response: Any, model: str) -> CanonicalCompletion:
        text = ""
        for block in getattr(response, "content", None) or []:
            block_text = getattr(block, "text", None)
            if block_text is not None:
                text = block_text
                break

        usage = getattr(response, "usage", None)
        return CanonicalCompletion.single(
            text,
            getattr(response, "stop_reason", None),
            prompt_tokens=getattr(usage, "input_tokens", 0),
            completion_tokens=getattr(usage, "output_tokens", 0),
            provider=self.name,
            model=getattr(response, "model", None) or model,
            raw=response,
        )

    async def execute(
        self,
        messages: list[dict[str, Any]],
        model: str,
        resolved: ResolvedConfig,
        params: Optional[dict[str, Any]] = None,
        client: Any = None,
    ) -> CanonicalCompletion:
        self.require_key(resolved)
        owned = client is None
        if owned:
            client = self.create_client(resolved)

        payload = self.build_payload(messages, model, params)
        try:
            response = await client.messages.create(**payload)
        except anthropic.APIStatusError as exc:
            status = exc.status_code
            logger.error(
                "upstream_error",
                extra={"provider": self.name, "status": status, "model": model},
            )
            message = body_error_message(exc.body) or f"Anthropic API error ({status})"
            raise UpstreamError(message, status=status, provider=self.name, cause=exc) from exc
        except anthropic.APIConnectionError as exc:
            logger.error(
                "upstream_unreachable",
                extra={"provider": self.name, "model": model, "error": str(exc)[:200]},
            )
            raise self.network_error(exc) from exc
        except anthropic.AnthropicError as exc:
            raise UpstreamError(
                f"Anthropic API request failed: {exc}",
                provider=self.name,
                cause=exc,
            ) from exc
        finally:
            if owned:
                await self.close_client(client)

        return self.normalize(response, model)

    async def list_models(
        self,
        resolved: ResolvedConfig,
        client: Any = None,
    ) -> list[dict[str, Any]]:
        return [dict(m) for m in ANTHROPIC_MODELS]
