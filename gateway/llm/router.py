"""
Provider Router - one request in, any backend out.

Wires the shared collaborators together for every call:

    ChatRequest
        │  agent_context?
        ├── no ──▶ adapter.execute() ──▶ CanonicalCompletion (untouched)
        │
        └── yes ─▶ inject_agent_context()
                   AffinityRouter.resolve()      sticky instance per agent
                   adapter.execute()
                   LoadMetricsTracker.record()   latency / errors
                   FailoverController            on retryable errors, priority ≥ 4
                   ──▶ CanonicalCompletion + agentMetadata

Construct one ProviderRouter at startup and pass it to whatever handles
requests; all routing state lives on it and nowhere else.

Usage:
    from gateway.llm.router import ProviderRouter
    from gateway.llm.models import ChatRequest

    router = ProviderRouter()
    completion = await router.complete(ChatRequest(
        model="claude-3-5-haiku-20241022",
        messages=[{"role": "user", "content": "Summarize the plan."}],
        agentContext={"agentId": "planner-1", "conversationId": "c-9",
                      "role": "orchestrator", "priority": 5},
    ))
    print(completion.text)
    print(router.get_provider_metrics())
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

from gateway.config.loader import build_provider_settings
from gateway.config.providers import ProviderSettings
from gateway.config.schema import GatewayConfig
from gateway.exceptions import ConfigurationError
from gateway.llm.adapters import ADAPTER_TYPES, ProviderAdapter
from gateway.llm.affinity import AffinityRouter
from gateway.llm.context import inject_agent_context
from gateway.llm.failover import FailoverController
from gateway.llm.metrics import LoadMetricsTracker
from gateway.llm.models import (
    AgentContext,
    AgentMetadata,
    CanonicalCompletion,
    ChatRequest,
    ProviderConfig,
)
from gateway.observability.logging_config import reset_request_id, set_request_id

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


class ProviderRouter:
    """
    Routes unified chat requests to provider adapters.

    All collaborators are injectable; anything omitted is built with
    defaults. Bookkeeping never awaits, so no locks are needed under
    asyncio.
    """

    def __init__(
        self,
        adapters: Optional[dict[str, ProviderAdapter]] = None,
        *,
        metrics: Optional[LoadMetricsTracker] = None,
        affinity: Optional[AffinityRouter] = None,
        failover: Optional[FailoverController] = None,
        settings: Optional[dict[str, ProviderSettings]] = None,
    ):
        if adapters is None:
            settings = settings or build_provider_settings()
            adapters = {
                name: adapter_type(settings[name])
                for name, adapter_type in ADAPTER_TYPES.items()
            }
        self._adapters = dict(adapters)
        self._metrics = metrics or LoadMetricsTracker()
        self._affinity = affinity or AffinityRouter(metrics=self._metrics)
        self._failover = failover or FailoverController(metrics=self._metrics)

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "ProviderRouter":
        metrics = LoadMetricsTracker(smoothing=config.metrics.smoothing)
        return cls(
            settings=build_provider_settings(config),
            metrics=metrics,
            affinity=AffinityRouter(metrics=metrics),
            failover=FailoverController(
                min_priority=config.failover.min_priority,
                metrics=metrics,
            ),
        )

    @property
    def metrics(self) -> LoadMetricsTracker:
        return self._metrics

    @property
    def affinity(self) -> AffinityRouter:
        return self._affinity

    @property
    def failover(self) -> FailoverController:
        return self._failover

    @property
    def providers(self) -> list[str]:
        return list(self._adapters)

    def get_adapter(self, provider: str) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ConfigurationError(
                f"Unsupported model provider: {provider}",
                provider=provider,
            )
        return adapter

    # --- Main Routing API ---

    async def complete(self, request: ChatRequest) -> CanonicalCompletion:
        """
        Execute `request` against its provider.

        Without an agent context the adapter's result is returned as-is.
        With one, the call is routed through affinity, metrics and
        failover, and `agent_metadata` is attached.

        Raises:
            GatewayError: The original failure; a failed fallback
                attempt never replaces it.
        """
        token = set_request_id(uuid.uuid4().hex[:12])
        try:
            provider = request.resolved_provider()
            adapter = self.get_adapter(provider)
            messages = request.message_dicts()
            params = request.params.to_payload()
            provider_config = request.provider_config(provider)

            if request.agent_context is None:
                resolved = adapter.resolve_config(provider_config, request.endpoint)
                return await adapter.execute(messages, request.model, resolved, params)

            return await self._complete_for_agent(
                adapter, request, request.agent_context, messages, params, provider_config
            )
        finally:
            reset_request_id(token)

    async def _complete_for_agent(
        self,
        adapter: ProviderAdapter,
        request: ChatRequest,
        ctx: AgentContext,
        messages: list[dict[str, Any]],
        params: dict[str, Any],
        provider_config: ProviderConfig,
    ) -> CanonicalCompletion:
        start = time.monotonic()

        enhanced = inject_agent_context(messages, ctx)
        instance = self._affinity.resolve(
            adapter, ctx.agent_id, provider_config, request.endpoint
        )

        try:
            completion = await adapter.execute(
                enhanced, request.model, instance.config, params, client=instance.client
            )
        except Exception as error:
            self._metrics.record(instance.instance_key, _elapsed_ms(start), is_error=True)
            logger.warning(
                "llm_primary_failed",
                extra={
                    "provider": adapter.name,
                    "agent_id": ctx.agent_id,
                    "priority": ctx.priority,
                    "instance_key": instance.instance_key,
                    "status": getattr(error, "status", None),
                    "error": str(error)[:200],
                },
            )
            if not self._failover.should_failover(error, ctx.priority):
                raise

            result = await self._failover.attempt(
                adapter,
                enhanced,
                request.model,
                params,
                instance.config,
                error,
                agent_id=ctx.agent_id,
            )
            completion = result.completion
            completion.agent_metadata = self._metadata(
                ctx,
                result.instance_key,
                _elapsed_ms(start),
                failover=True,
                original_error=str(error),
            )
            return completion

        latency = _elapsed_ms(start)
        self._metrics.record(instance.instance_key, latency, is_error=False)
        completion.agent_metadata = self._metadata(ctx, instance.instance_key, latency)

        logger.info(
            "llm_routed",
            extra={
                "provider": adapter.name,
                "model": request.model,
                "agent_id": ctx.agent_id,
                "instance_key": instance.instance_key,
                "tokens": completion.usage.total_tokens,
                "latency_ms": round(latency, 1),
            },
        )
        return completion

    @staticmethod
    def _metadata(
        ctx: AgentContext,
        instance_key: str,
        latency_ms: float,
        *,
        failover: Optional[bool] = None,
        original_error: Optional[str] = None,
    ) -> AgentMetadata:
        return AgentMetadata(
            agent_id=ctx.agent_id,
            conversation_id=ctx.conversation_id,
            role=ctx.role,
            priority=ctx.priority,
            provider_instance=instance_key,
            response_time=round(latency_ms, 1),
            failover=failover,
            original_error=original_error,
        )

    # --- Model Listing ---

    async def list_models(
        self,
        provider: str,
        provider_config: Optional[ProviderConfig] = None,
        agent_context: Optional[AgentContext] = None,
    ) -> list[dict[str, Any]]:
        """
        Models offered by `provider`.

        With an agent context the agent's assigned instance serves the
        listing and its latency is recorded; if that fails, a plain
        listing with `provider_config` is tried instead.
        """
        adapter = self.get_adapter(provider)
        resolved = adapter.resolve_config(provider_config)

        if agent_context is None:
            return await adapter.list_models(resolved)

        instance_key = None
        start = time.monotonic()
        try:
            instance = self._affinity.resolve(adapter, agent_context.agent_id, provider_config)
            instance_key = instance.instance_key
            models = await adapter.list_models(instance.config, client=instance.client)
        except Exception as error:
            if instance_key is not None:
                self._metrics.record(instance_key, _elapsed_ms(start), is_error=True)
            logger.warning(
                "model_listing_fallback",
                extra={
                    "provider": provider,
                    "agent_id": agent_context.agent_id,
                    "error": str(error)[:200],
                },
            )
            return await adapter.list_models(resolved)

        self._metrics.record(instance.instance_key, _elapsed_ms(start), is_error=False)
        return models

    # --- Monitoring & Teardown ---

    def get_provider_metrics(self) -> dict[str, dict[str, Any]]:
        """Per-instance requests, errors, avgLatency and errorRate."""
        return self._metrics.snapshot()

    def reset_agent_assignments(self) -> None:
        """Release every agent's sticky assignment (tests, rebalancing)."""
        self._affinity.reset()

    async def reset(self) -> None:
        """Forget assignments, instances and metrics, closing cached clients."""
        released = self._affinity.clear()
        self._metrics.reset()
        for instance in released:
            if instance.client is not None:
                await self._adapters[instance.provider].close_client(instance.client)

    async def aclose(self) -> None:
        """Teardown at shutdown; the router stays usable and rebuilds clients on demand."""
        await self.reset()
