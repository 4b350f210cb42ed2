"""
Failover Controller - one retry against an alternate configuration.

Per failed call:

    classify(error) ── not retryable, or priority < min_priority ──▶ re-raise original
         │
         ▼
    fallback config from *_FALLBACK env vars ── same as primary ──▶ re-raise original
         │
         ▼
    execute once ── fails ──▶ re-raise original (never the fallback's error)
         │
         ▼
    completion (caller marks agentMetadata.failover = True)

Retryable: HTTP 429, HTTP ≥ 500, and any network-level failure,
including a refused connection.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from gateway.exceptions import NetworkError, UpstreamError
from gateway.llm.adapters.base import ProviderAdapter
from gateway.llm.metrics import LoadMetricsTracker
from gateway.llm.models import CanonicalCompletion, ResolvedConfig

logger = logging.getLogger(__name__)

DEFAULT_MIN_PRIORITY = 4


@dataclass
class FailoverResult:
    """A completion served by the fallback configuration."""

    completion: CanonicalCompletion
    instance_key: str
    config: ResolvedConfig


class FailoverController:
    """
    Decides whether a failed call earns a second attempt, and makes it.

    Args:
        min_priority: Lowest agent priority eligible for failover.
        metrics: Tracker that also records the fallback attempt under
                 the fallback instance key.
    """

    def __init__(
        self,
        min_priority: int = DEFAULT_MIN_PRIORITY,
        metrics: Optional[LoadMetricsTracker] = None,
    ):
        self.min_priority = min_priority
        self._metrics = metrics

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        if isinstance(error, NetworkError):
            return True
        if isinstance(error, UpstreamError):
            return error.status == 429 or error.status >= 500
        return False

    def should_failover(self, error: BaseException, priority: int) -> bool:
        return priority >= self.min_priority and self.is_retryable(error)

    async def attempt(
        self,
        adapter: ProviderAdapter,
        messages: list[dict[str, Any]],
        model: str,
        params: Optional[dict[str, Any]],
        primary: ResolvedConfig,
        original_error: Exception,
        *,
        agent_id: Optional[str] = None,
    ) -> FailoverResult:
        """
        Execute once against the fallback configuration.

        Raises:
            original_error: If no distinct fallback exists or the
                fallback attempt fails too.
        """
        fallback = adapter.fallback_config(primary)
        if fallback is None:
            logger.info(
                "llm_failover_unavailable",
                extra={"provider": adapter.name, "agent_id": agent_id},
            )
            raise original_error

        instance_key = adapter.instance_key(fallback)
        logger.warning(
            "llm_failover_attempted",
            extra={
                "provider": adapter.name,
                "agent_id": agent_id,
                "instance_key": instance_key,
                "primary_error": str(original_error)[:200],
            },
        )

        start = time.monotonic()
        try:
            completion = await adapter.execute(messages, model, fallback, params)
        except Exception as fallback_error:
            self._record(instance_key, start, is_error=True)
            logger.error(
                "llm_failover_failed",
                extra={
                    "provider": adapter.name,
                    "agent_id": agent_id,
                    "primary_error": str(original_error)[:100],
                    "fallback_error": str(fallback_error)[:100],
                },
            )
            raise original_error

        self._record(instance_key, start, is_error=False)
        logger.info(
            "llm_failover_used",
            extra={
                "provider": adapter.name,
                "agent_id": agent_id,
                "instance_key": instance_key,
            },
        )
        return FailoverResult(completion=completion, instance_key=instance_key, config=fallback)

    def _record(self, instance_key: str, start: float, *, is_error: bool) -> None:
        if self._metrics is not None:
            self._metrics.record(instance_key, (time.monotonic() - start) * 1000, is_error)
