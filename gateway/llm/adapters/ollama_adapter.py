"""
Ollama adapter.

Talks to a (usually local) Ollama daemon over plain HTTP via httpx:

    POST {base_url}/api/chat          (no auth)
    {"model", "messages", "stream": false,
     "options": {"temperature"?, "top_p"?, "num_predict"?}}

Ollama nests sampling parameters under `options`, calls max_tokens
`num_predict`, and may answer HTTP 200 with `{"error": "..."}` in the
body, so the body is checked on every response.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx

from gateway.config.providers import OLLAMA, ProviderSettings
from gateway.exceptions import NetworkError, UpstreamError
from gateway.llm.adapters.base import ProviderAdapter, body_error_message
from gateway.llm.models import CanonicalCompletion, ResolvedConfig

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

# canonical param name → Ollama option name
_OPTION_NAMES = {
    "temperature": "temperature",
    "top_p": "top_p",
    "max_tokens": "num_predict",
}


class OllamaAdapter(ProviderAdapter):
    label = "Ollama"

    def __init__(
        self,
        settings: ProviderSettings = OLLAMA,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings, transport=transport)

    def normalize_endpoint(self, endpoint: str) -> str:
        endpoint = super().normalize_endpoint(endpoint)
        if not _SCHEME_RE.match(endpoint):
            endpoint = f"http://{endpoint}"
        return endpoint

    def instance_key(self, resolved: ResolvedConfig) -> str:
        return f"{self.settings.instance_prefix}_{resolved.endpoint}"

    def build_payload(
        self,
        messages: list[dict[str, Any]],
        model: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        params = params or {}
        options = {
            option: params.get(name)
            for name, option in _OPTION_NAMES.items()
        }
        # Some Ollama builds reject present-but-null options
        options = {k: v for k, v in options.items() if v is not None}
        return {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": options,
        }

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            if response.is_error:
                return {"error": response.text.strip() or None}
            raise UpstreamError(
                "Ollama returned a non-JSON response",
                status=response.status_code,
                provider=self.name,
            )
        return data if isinstance(data, dict) else {}

    def normalize(self, data: dict[str, Any], model: str) -> CanonicalCompletion:
        message = data.get("message") or {}
        return CanonicalCompletion.single(
            message.get("content", ""),
            "stop" if data.get("done") else "incomplete",
            prompt_tokens=data.get("prompt_eval_count", 0),
            completion_tokens=data.get("eval_count", 0),
            provider=self.name,
            model=data.get("model") or model,
            raw=data,
        )

    async def _request(
        self,
        method: str,
        url: str,
        client: Optional[httpx.AsyncClient],
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            if client is not None:
                return await client.request(method, url, **kwargs)
            async with self._http_client() as owned:
                return await owned.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise self.network_error(exc, f"Ollama request to {url} timed out") from exc
        except httpx.RequestError as exc:
            raise self.network_error(exc, f"Ollama request to {url} failed: {exc}") from exc

    async def execute(
        self,
        messages: list[dict[str, Any]],
        model: str,
        resolved: ResolvedConfig,
        params: Optional[dict[str, Any]] = None,
        client: Any = None,
    ) -> CanonicalCompletion:
        payload = self.build_payload(messages, model, params)
        url = f"{resolved.endpoint}/api/chat"

        try:
            response = await self._request("POST", url, client, json=payload)
        except NetworkError as exc:
            logger.error(
                "upstream_unreachable",
                extra={"provider": self.name, "model": model, "error": str(exc)[:200]},
            )
            raise

        data = self._decode(response)
        if response.is_error or data.get("error"):
            status = response.status_code
            logger.error(
                "upstream_error",
                extra={"provider": self.name, "status": status, "model": model},
            )
            raise UpstreamError(
                body_error_message(data) or f"Ollama API error ({status})",
                status=status,
                provider=self.name,
                details={"body": data},
            )

        return self.normalize(data, model)

    async def list_models(
        self,
        resolved: ResolvedConfig,
        client: Any = None,
    ) -> list[dict[str, Any]]:
        response = await self._request("GET", f"{resolved.endpoint}/api/tags", client)
        if response.is_error:
            raise UpstreamError(
                f"Failed to connect to Ollama at {resolved.endpoint}. "
                "Ensure Ollama is running and accessible.",
                status=response.status_code,
                provider=self.name,
            )
        data = self._decode(response)
        models = sorted(data.get("models") or [], key=lambda m: m.get("name", ""))
        return [{**m, "id": m.get("name"), "name": m.get("name")} for m in models]
