"""
Affinity Router - sticky agent → provider instance assignment.

The first call an agent makes through an adapter decides which
(credentials, endpoint) pair serves that agent for the rest of the
process lifetime. Later calls get the cached instance back even if they
pass a different config or endpoint override, so an agent never
silently switches backends mid-conversation. Only `reset()` releases
the assignments.

Instances are cached by instance key and never evicted; constructing
one is idempotent, so two concurrent first requests for the same agent
may both build one and the last assignment simply wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from gateway.llm.adapters.base import ProviderAdapter
from gateway.llm.metrics import LoadMetricsTracker
from gateway.llm.models import ProviderConfig, ResolvedConfig

logger = logging.getLogger(__name__)


@dataclass
class ProviderInstance:
    """A resolved backend configuration and, where applicable, its client."""

    instance_key: str
    provider: str
    config: ResolvedConfig
    client: Any = None

    @property
    def endpoint(self) -> str:
        return self.config.endpoint


class AffinityRouter:
    """
    Maps (provider, agent_id) to a cached ProviderInstance.

    Entries are scoped per adapter: an agent talking to both Anthropic
    and Ollama holds one assignment for each.
    """

    def __init__(self, metrics: Optional[LoadMetricsTracker] = None):
        self._metrics = metrics
        self._instances: dict[str, ProviderInstance] = {}
        self._assignments: dict[tuple[str, str], str] = {}

    def resolve(
        self,
        adapter: ProviderAdapter,
        agent_id: str,
        provider_config: Optional[ProviderConfig] = None,
        endpoint_override: Optional[str] = None,
    ) -> ProviderInstance:
        """Return the agent's assigned instance, creating and assigning one if needed."""
        assignment = (adapter.name, agent_id)
        assigned_key = self._assignments.get(assignment)
        if assigned_key is not None:
            instance = self._instances.get(assigned_key)
            if instance is not None:
                return instance

        resolved = adapter.resolve_config(provider_config, endpoint_override)
        instance_key = adapter.instance_key(resolved)

        instance = self._instances.get(instance_key)
        if instance is None:
            instance = ProviderInstance(
                instance_key=instance_key,
                provider=adapter.name,
                config=resolved,
                client=adapter.create_client(resolved),
            )
            self._instances[instance_key] = instance
            if self._metrics is not None:
                self._metrics.ensure(instance_key)
            logger.info(
                "provider_instance_created",
                extra={"provider": adapter.name, "instance_key": instance_key},
            )

        self._assignments[assignment] = instance_key
        logger.debug(
            "agent_assigned",
            extra={"provider": adapter.name, "agent_id": agent_id, "instance_key": instance_key},
        )
        return instance

    def assignment_for(self, provider: str, agent_id: str) -> Optional[str]:
        return self._assignments.get((provider, agent_id))

    def assignments(self) -> dict[tuple[str, str], str]:
        return dict(self._assignments)

    def instances(self) -> dict[str, ProviderInstance]:
        return dict(self._instances)

    def reset(self) -> None:
        """Drop every agent assignment; instances and metrics survive."""
        self._assignments.clear()

    def clear(self) -> list[ProviderInstance]:
        """Drop assignments and instances. Returns the released instances."""
        released = list(self._instances.values())
        self._assignments.clear()
        self._instances.clear()
        return released
