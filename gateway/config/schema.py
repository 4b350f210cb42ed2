"""
Pydantic configuration schema for the Agent Gateway.

A gateway.yaml file conforming to these models can tune the failover
threshold, the latency smoothing factor and per-provider defaults
without code changes. Every field has a default, so an empty file (or
no file at all) yields the built-in behavior.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from gateway.config.providers import ProviderName


class FailoverConfig(BaseModel):
    """When a failed call may be retried against the fallback configuration."""
    min_priority: int = Field(
        4, ge=1, le=5, description="Lowest agent priority eligible for failover"
    )


class MetricsConfig(BaseModel):
    """Rolling latency tracking."""
    smoothing: float = Field(
        0.2, gt=0.0, le=1.0, description="EWMA weight given to the newest sample"
    )


class ProviderOverride(BaseModel):
    """Per-provider overrides of the built-in defaults."""
    default_endpoint: Optional[str] = None
    timeout_seconds: Optional[float] = Field(None, gt=0)
    max_retries: Optional[int] = Field(None, ge=0)


class LoggingConfig(BaseModel):
    env: Optional[str] = None
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v


class GatewayConfig(BaseModel):
    """Top-level gateway configuration."""
    failover: FailoverConfig = Field(default_factory=FailoverConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    providers: dict[str, ProviderOverride] = Field(default_factory=dict)

    @field_validator("providers")
    @classmethod
    def providers_must_be_known(
        cls, v: dict[str, ProviderOverride]
    ) -> dict[str, ProviderOverride]:
        known = {p.value for p in ProviderName}
        unknown = sorted(set(v) - known)
        if unknown:
            raise ValueError(
                f"Unknown provider(s) {unknown}; expected one of {sorted(known)}"
            )
        return v
