"""
Tests for gateway configuration.

Covers:
1. ProviderSettings - env resolution, fallback env, overrides
2. provider_for_model - model id → provider inference
3. GatewayConfig schema - defaults and validation
4. load_gateway_config - path / env / defaults, invalid files
5. build_provider_settings - overrides applied on the built-in table
"""

from __future__ import annotations

import textwrap

import pytest
from pydantic import ValidationError

from gateway.config.loader import (
    CONFIG_ENV_VAR,
    build_provider_settings,
    load_gateway_config,
)
from gateway.config.providers import (
    ANTHROPIC,
    DEFAULT_PROVIDERS,
    OLLAMA,
    OPENAI,
    ProviderName,
    provider_for_model,
)
from gateway.config.schema import GatewayConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "OPENAI_API_KEY", "OPENAI_API_KEY_FALLBACK", "OPENAI_ENDPOINT_FALLBACK",
        "OLLAMA_ENDPOINT", "OLLAMA_ENDPOINT_FALLBACK", CONFIG_ENV_VAR,
    ):
        monkeypatch.delenv(var, raising=False)


def _write(tmp_path, content: str):
    path = tmp_path / "gateway.yaml"
    path.write_text(textwrap.dedent(content))
    return path


# ===========================================================================
# ProviderSettings
# ===========================================================================

class TestProviderSettings:
    """Per-backend env bindings."""

    def test_default_table_has_every_provider(self):
        """One settings entry per supported provider."""
        assert set(DEFAULT_PROVIDERS) == {p.value for p in ProviderName}

    def test_env_key(self, monkeypatch):
        """API key is read from the provider's env var."""
        assert OPENAI.env_key() is None
        monkeypatch.setenv("OPENAI_API_KEY", "sk-primary")
        assert OPENAI.env_key() == "sk-primary"

    def test_ollama_has_no_key(self):
        """Ollama never reads an API key."""
        assert OLLAMA.env_key() is None
        assert OLLAMA.requires_key is False

    def test_ollama_endpoint_env(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_ENDPOINT", "http://gpu-box:11434")
        assert OLLAMA.env_endpoint() == "http://gpu-box:11434"

    def test_fallback_env(self, monkeypatch):
        """Fallback key/endpoint come from *_FALLBACK variables."""
        assert OPENAI.fallback_key() is None
        assert OPENAI.fallback_endpoint() is None
        monkeypatch.setenv("OPENAI_API_KEY_FALLBACK", "sk-backup")
        monkeypatch.setenv("OPENAI_ENDPOINT_FALLBACK", "https://backup.example/v1")
        assert OPENAI.fallback_key() == "sk-backup"
        assert OPENAI.fallback_endpoint() == "https://backup.example/v1"

    def test_ollama_default_fallback_endpoint(self, monkeypatch):
        """Ollama falls back to the next local port unless told otherwise."""
        assert OLLAMA.fallback_endpoint() == "http://localhost:11435"
        monkeypatch.setenv("OLLAMA_ENDPOINT_FALLBACK", "http://spare:11434")
        assert OLLAMA.fallback_endpoint() == "http://spare:11434"

    def test_with_overrides_ignores_none(self):
        """None overrides leave the settings untouched."""
        assert ANTHROPIC.with_overrides(timeout_seconds=None) is ANTHROPIC
        changed = ANTHROPIC.with_overrides(timeout_seconds=5.0)
        assert changed.timeout_seconds == 5.0
        assert changed.name == "anthropic"

    def test_openai_sdk_retry_budget(self):
        """The OpenAI SDK keeps its own small retry budget."""
        assert OPENAI.max_retries == 2
        assert OPENAI.timeout_seconds == 30.0


# ===========================================================================
# Model → Provider Inference
# ===========================================================================

class TestProviderForModel:
    """Inferring the backend from a model id."""

    @pytest.mark.parametrize("model,expected", [
        ("claude-3-5-haiku-20241022", "anthropic"),
        ("anthropic/claude-3-opus", "anthropic"),
        ("gpt-4o-mini", "openai"),
        ("openai/gpt-4o", "openai"),
        ("google/gemini-pro", "openrouter"),
        ("meta-llama/llama-3-70b", "openrouter"),
        ("llama3", "ollama"),
        ("mistral:7b", "ollama"),
    ])
    def test_inference(self, model, expected):
        assert provider_for_model(model) == expected

    def test_empty_model_defaults_to_openai(self):
        assert provider_for_model("") == "openai"
        assert provider_for_model(None) == "openai"


# ===========================================================================
# Schema
# ===========================================================================

class TestGatewayConfigSchema:
    """Validation of gateway.yaml content."""

    def test_defaults(self):
        config = GatewayConfig()
        assert config.failover.min_priority == 4
        assert config.metrics.smoothing == 0.2
        assert config.providers == {}
        assert config.logging.level == "INFO"

    def test_min_priority_bounds(self):
        with pytest.raises(ValidationError):
            GatewayConfig(failover={"min_priority": 6})

    def test_smoothing_must_be_positive(self):
        with pytest.raises(ValidationError):
            GatewayConfig(metrics={"smoothing": 0})

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError, match="Unknown provider"):
            GatewayConfig(providers={"bedrock": {}})

    def test_log_level_uppercased(self):
        assert GatewayConfig(logging={"level": "debug"}).logging.level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            GatewayConfig(logging={"level": "chatty"})


# ===========================================================================
# Loader
# ===========================================================================

class TestLoadGatewayConfig:
    """Reading gateway.yaml from disk."""

    def test_no_path_no_env_gives_defaults(self):
        assert load_gateway_config() == GatewayConfig()

    def test_loads_explicit_path(self, tmp_path):
        path = _write(tmp_path, """
            failover:
              min_priority: 3
            metrics:
              smoothing: 0.5
            providers:
              ollama:
                default_endpoint: http://gpu-box:11434
                timeout_seconds: 120
        """)
        config = load_gateway_config(path)
        assert config.failover.min_priority == 3
        assert config.metrics.smoothing == 0.5
        assert config.providers["ollama"].timeout_seconds == 120

    def test_reads_env_var(self, tmp_path, monkeypatch):
        """GATEWAY_CONFIG is used when no path is passed."""
        path = _write(tmp_path, "failover:\n  min_priority: 5\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_gateway_config().failover.min_priority == 5

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_gateway_config(tmp_path / "nope.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_gateway_config(_write(tmp_path, "")) == GatewayConfig()

    def test_non_mapping_raises_value_error(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            load_gateway_config(_write(tmp_path, "- just\n- a list\n"))

    def test_invalid_content_raises_value_error(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid gateway config"):
            load_gateway_config(_write(tmp_path, "metrics:\n  smoothing: 3\n"))


class TestBuildProviderSettings:
    """Applying overrides to the built-in provider table."""

    def test_without_config_returns_defaults(self):
        assert build_provider_settings() == DEFAULT_PROVIDERS

    def test_overrides_applied(self):
        config = GatewayConfig(providers={
            "openai": {"max_retries": 0, "timeout_seconds": 10},
        })
        settings = build_provider_settings(config)
        assert settings["openai"].max_retries == 0
        assert settings["openai"].timeout_seconds == 10
        assert settings["openai"].default_endpoint == OPENAI.default_endpoint
        assert settings["anthropic"] is ANTHROPIC

    def test_does_not_mutate_default_table(self):
        build_provider_settings(GatewayConfig(providers={"ollama": {"timeout_seconds": 1}}))
        assert DEFAULT_PROVIDERS["ollama"].timeout_seconds == 30.0
