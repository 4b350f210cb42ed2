"""
Configuration loader for the Agent Gateway.

Loads gateway.yaml, validates it against the Pydantic schema and applies
the per-provider overrides on top of the built-in provider table.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from gateway.config.providers import DEFAULT_PROVIDERS, ProviderSettings
from gateway.config.schema import GatewayConfig

CONFIG_ENV_VAR = "GATEWAY_CONFIG"


def load_gateway_config(
    config_path: Optional[str | Path] = None,
) -> GatewayConfig:
    """
    Load and validate the gateway configuration.

    Args:
        config_path: Optional explicit path to a YAML file. If not
                     provided, GATEWAY_CONFIG is consulted; if that is
                     unset too, built-in defaults are returned.

    Returns:
        Validated GatewayConfig instance.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist.
        ValueError: If the file content is invalid.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or None
    if config_path is None:
        return GatewayConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Gateway config not found: {config_path}")

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return GatewayConfig()
    if not isinstance(raw, dict):
        raise ValueError(
            f"Top-level gateway configuration must be a mapping: {config_path}"
        )

    try:
        return GatewayConfig(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid gateway config in {config_path}:\n{e}") from e


def build_provider_settings(
    config: Optional[GatewayConfig] = None,
) -> dict[str, ProviderSettings]:
    """Return the provider table with the config's overrides applied."""
    config = config or GatewayConfig()
    settings = dict(DEFAULT_PROVIDERS)
    for name, override in config.providers.items():
        settings[name] = settings[name].with_overrides(
            default_endpoint=override.default_endpoint,
            timeout_seconds=override.timeout_seconds,
            max_retries=override.max_retries,
        )
    return settings
