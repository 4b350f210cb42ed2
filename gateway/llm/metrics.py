"""
Load Metrics - rolling request/error counts and smoothed latency.

One LoadMetric per provider instance key. Latency is an exponentially
weighted moving average: the first sample is taken as-is, every later
sample is blended in with weight `smoothing` (0.2 by default):

    avg = avg * 0.8 + latency * 0.2

The error rate is never stored; it is computed whenever metrics are read.

Usage:
    tracker = LoadMetricsTracker()
    tracker.record("openai_sk-abc12...https://api.openai.com/v1", 412.0, is_error=False)
    tracker.snapshot()
    # → {"openai_sk-abc12...": {"requests": 1, "errors": 0,
    #                           "avgLatency": 412.0, "errorRate": 0.0}}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class LoadMetric:
    """Counters for one provider instance."""

    requests: int = 0
    errors: int = 0
    avg_latency: float = 0.0      # milliseconds

    @property
    def error_rate(self) -> float:
        """Percentage of requests that failed (0 when nothing was recorded)."""
        if self.requests == 0:
            return 0.0
        return self.errors / self.requests * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": self.requests,
            "errors": self.errors,
            "avgLatency": self.avg_latency,
            "errorRate": self.error_rate,
        }


class LoadMetricsTracker:
    """
    Tracks LoadMetric per instance key.

    Safe under asyncio without locks: `record` never awaits, so two
    in-flight requests can't interleave inside it.
    """

    def __init__(self, smoothing: float = 0.2):
        if not 0.0 < smoothing <= 1.0:
            raise ValueError(f"smoothing must be in (0, 1], got {smoothing}")
        self._smoothing = smoothing
        self._metrics: dict[str, LoadMetric] = {}

    @property
    def smoothing(self) -> float:
        return self._smoothing

    def ensure(self, instance_key: str) -> LoadMetric:
        """Register a zeroed metric for a newly created instance."""
        metric = self._metrics.get(instance_key)
        if metric is None:
            metric = self._metrics[instance_key] = LoadMetric()
        return metric

    def record(self, instance_key: str, latency_ms: float, is_error: bool = False) -> LoadMetric:
        """Count one request against `instance_key` and fold in its latency."""
        latency_ms = max(0.0, float(latency_ms))
        metric = self.ensure(instance_key)
        metric.requests += 1
        if is_error:
            metric.errors += 1

        if metric.requests == 1:
            metric.avg_latency = latency_ms
        else:
            metric.avg_latency = (
                metric.avg_latency * (1 - self._smoothing)
                + latency_ms * self._smoothing
            )

        logger.debug(
            "load_metric_recorded",
            extra={
                "instance_key": instance_key,
                "latency_ms": round(latency_ms, 1),
                "is_error": is_error,
                "requests": metric.requests,
            },
        )
        return metric

    def get(self, instance_key: str) -> LoadMetric | None:
        return self._metrics.get(instance_key)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Fresh copy of all metrics, error rates computed now."""
        return {key: metric.to_dict() for key, metric in self._metrics.items()}

    def reset(self) -> None:
        self._metrics.clear()
