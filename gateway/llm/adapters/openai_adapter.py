"""
OpenAI-compatible adapter.

Wraps the Chat Completions API through the official async SDK. Messages
and sampling parameters pass through unchanged:

    POST {base_url}/chat/completions
    Authorization: Bearer <key>
    {"model": ..., "messages": [...], **params}

The SDK client carries its own request timeout (30s) and a small
internal retry budget (2), independent of the gateway's failover.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
import openai

from gateway.config.providers import OPENAI, ProviderSettings
from gateway.exceptions import UpstreamError
from gateway.llm.adapters.base import ProviderAdapter, body_error_message
from gateway.llm.models import (
    CanonicalCompletion,
    Choice,
    CompletionMessage,
    ResolvedConfig,
    Usage,
)

logger = logging.getLogger(__name__)


def _as_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if isinstance(obj, dict):
        return dict(obj)
    return dict(vars(obj))


class OpenAIAdapter(ProviderAdapter):
    """Adapter for OpenAI and any server speaking its chat protocol."""

    label = "OpenAI"

    # Friendlier messages for the statuses callers hit most often
    STATUS_MESSAGES: dict[int, str] = {
        401: "Invalid OpenAI API key provided.",
        429: "OpenAI API rate limit exceeded. Please try again later.",
        503: "OpenAI API is temporarily unavailable. Please try again later.",
    }

    def __init__(
        self,
        settings: ProviderSettings = OPENAI,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings, transport=transport)

    # --- Clients ---

    def default_headers(self, resolved: ResolvedConfig) -> dict[str, str]:
        return {}

    def create_client(self, resolved: ResolvedConfig) -> openai.AsyncOpenAI:
        self.require_key(resolved)
        return openai.AsyncOpenAI(
            api_key=resolved.key,
            base_url=resolved.endpoint,
            timeout=self.settings.timeout_seconds,
            max_retries=self.settings.max_retries,
            default_headers=self.default_headers(resolved) or None,
            http_client=self._http_client() if self._transport else None,
        )

    # --- Translation ---

    def build_payload(
        self,
        messages: list[dict[str, Any]],
        model: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        return {"model": model, "messages": messages, **(params or {})}

    def normalize(self, response: Any, model: str) -> CanonicalCompletion:
        choices = [
            Choice(
                message=CompletionMessage(
                    content=getattr(getattr(c, "message", None), "content", None) or ""
                ),
                finish_reason=getattr(c, "finish_reason", None),
            )
            for c in (getattr(response, "choices", None) or [])
        ]
        if not choices:
            choices = [Choice(CompletionMessage(""), None)]

        usage = getattr(response, "usage", None)
        return CanonicalCompletion(
            choices=choices,
            usage=Usage(
                prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
                completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            ),
            provider=self.name,
            model=getattr(response, "model", None) or model,
            raw=response,
        )

    def status_error(self, exc: openai.APIStatusError) -> UpstreamError:
        status = exc.status_code
        message = (
            self.STATUS_MESSAGES.get(status)
            or body_error_message(exc.body)
            or exc.message
            or f"{self.label} API error ({status})"
        )
        return UpstreamError(message, status=status, provider=self.name, cause=exc)

    # --- Calls ---

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
            response = await client.chat.completions.create(**payload)
        except openai.APIStatusError as exc:
            logger.error(
                "upstream_error",
                extra={"provider": self.name, "status": exc.status_code, "model": model},
            )
            raise self.status_error(exc) from exc
        except openai.APIConnectionError as exc:
            logger.error(
                "upstream_unreachable",
                extra={"provider": self.name, "model": model, "error": str(exc)[:200]},
            )
            raise self.network_error(exc) from exc
        except openai.OpenAIError as exc:
            raise UpstreamError(
                f"{self.label} API request failed: {exc}",
                provider=self.name,
                cause=exc,
            ) from exc
        finally:
            if owned:
                await self.close_client(client)

        return self.normalize(response, model)

    # --- Model Listing ---

    def filter_models(self, models: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Chat-capable models only, GPT-4 family first, then alphabetical."""
        chat = [
            m for m in models
            if any(tag in m["id"] for tag in ("gpt", "text-davinci", "claude"))
        ]
        return sorted(chat, key=lambda m: (not m["id"].startswith("gpt-4"), m["id"]))

    async def list_models(
        self,
        resolved: ResolvedConfig,
        client: Any = None,
    ) -> list[dict[str, Any]]:
        self.require_key(resolved)
        owned = client is None
        if owned:
            client = self.create_client(resolved)
        try:
            page = await client.models.list()
        except openai.APIStatusError as exc:
            raise self.status_error(exc) from exc
        except openai.APIConnectionError as exc:
            raise self.network_error(exc) from exc
        finally:
            if owned:
                await self.close_client(client)

        models = []
        for item in getattr(page, "data", None) or []:
            data = _as_dict(item)
            model_id = data.get("id") or getattr(item, "id", "")
            models.append({**data, "id": model_id, "name": data.get("name") or model_id})
        return self.filter_models(models)
