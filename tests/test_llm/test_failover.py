"""
Tests for the failover controller.

Covers:
1. Error classification (429, 5xx, network → retryable)
2. Priority gating
3. Exactly one fallback attempt against a distinct configuration
4. The original error surviving a failed fallback

Ollama is used as the backend: its fallback endpoint defaults to the
next local port, so primary and fallback are told apart by URL.
"""

from __future__ import annotations

import httpx
import pytest

from gateway.exceptions import (
    ConfigurationError,
    ConnectionRefusedNetworkError,
    NetworkError,
    UpstreamError,
)
from gateway.llm.adapters import OllamaAdapter, OpenAIAdapter
from gateway.llm.failover import FailoverController
from gateway.llm.metrics import LoadMetricsTracker
from gateway.llm.models import ResolvedConfig

PRIMARY = ResolvedConfig(key=None, endpoint="http://localhost:11434")
FALLBACK_KEY = "ollama_http://localhost:11435"
MESSAGES = [{"role": "user", "content": "Hi"}]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("OLLAMA_ENDPOINT_FALLBACK", "OPENAI_API_KEY_FALLBACK", "OPENAI_ENDPOINT_FALLBACK"):
        monkeypatch.delenv(var, raising=False)


class PortRouter:
    """Answers by port and counts hits per port."""

    def __init__(self, responses: dict[int, httpx.Response]):
        self.responses = responses
        self.hits: dict[int, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        port = request.url.port
        self.hits[port] = self.hits.get(port, 0) + 1
        return self.responses[port]


def _ok(content: str = "from fallback") -> httpx.Response:
    return httpx.Response(200, json={
        "model": "llama3",
        "message": {"role": "assistant", "content": content},
        "done": True,
        "prompt_eval_count": 4,
        "eval_count": 2,
    })


@pytest.fixture
def metrics():
    return LoadMetricsTracker()


@pytest.fixture
def controller(metrics):
    return FailoverController(metrics=metrics)


# ===========================================================================
# Classification
# ===========================================================================

class TestClassification:
    """Which errors earn a second attempt."""

    @pytest.mark.parametrize("error", [
        UpstreamError("rate limited", status=429),
        UpstreamError("boom", status=500),
        UpstreamError("overloaded", status=529),
        NetworkError("timed out"),
        ConnectionRefusedNetworkError("refused"),
    ])
    def test_retryable(self, error):
        assert FailoverController.is_retryable(error) is True

    @pytest.mark.parametrize("error", [
        UpstreamError("bad request", status=400),
        UpstreamError("bad key", status=401),
        UpstreamError("in-body error", status=200),
        ConfigurationError("no key"),
        ValueError("not a gateway error"),
    ])
    def test_not_retryable(self, error):
        assert FailoverController.is_retryable(error) is False

    def test_priority_gate(self, controller):
        error = UpstreamError("rate limited", status=429)
        assert controller.should_failover(error, 3) is False
        assert controller.should_failover(error, 4) is True
        assert controller.should_failover(error, 5) is True

    def test_custom_threshold(self):
        controller = FailoverController(min_priority=2)
        assert controller.should_failover(NetworkError("x"), 2) is True
        assert controller.should_failover(NetworkError("x"), 1) is False


# ===========================================================================
# Attempt
# ===========================================================================

class TestAttempt:
    """One call against the fallback configuration."""

    @pytest.mark.asyncio
    async def test_success_returns_fallback_completion(self, controller, metrics):
        ports = PortRouter({11435: _ok()})
        adapter = OllamaAdapter(transport=httpx.MockTransport(ports))
        original = UpstreamError("primary down", status=503)

        result = await controller.attempt(
            adapter, MESSAGES, "llama3", None, PRIMARY, original, agent_id="critic"
        )

        assert result.completion.text == "from fallback"
        assert result.instance_key == FALLBACK_KEY
        assert result.config.endpoint == "http://localhost:11435"
        assert ports.hits == {11435: 1}
        recorded = metrics.get(FALLBACK_KEY)
        assert recorded.requests == 1
        assert recorded.errors == 0

    @pytest.mark.asyncio
    async def test_fallback_failure_reraises_original(self, controller, metrics):
        ports = PortRouter({11435: httpx.Response(500, json={"error": "also down"})})
        adapter = OllamaAdapter(transport=httpx.MockTransport(ports))
        original = NetworkError("primary unreachable", provider="ollama")

        with pytest.raises(NetworkError) as exc_info:
            await controller.attempt(adapter, MESSAGES, "llama3", None, PRIMARY, original)

        assert exc_info.value is original
        assert ports.hits == {11435: 1}
        assert metrics.get(FALLBACK_KEY).errors == 1

    @pytest.mark.asyncio
    async def test_identical_fallback_short_circuits(self, controller, monkeypatch):
        """No network call when the fallback equals the primary."""
        monkeypatch.setenv("OLLAMA_ENDPOINT_FALLBACK", "http://localhost:11434")
        ports = PortRouter({11434: _ok()})
        adapter = OllamaAdapter(transport=httpx.MockTransport(ports))
        original = UpstreamError("primary down", status=503)

        with pytest.raises(UpstreamError) as exc_info:
            await controller.attempt(adapter, MESSAGES, "llama3", None, PRIMARY, original)

        assert exc_info.value is original
        assert ports.hits == {}

    @pytest.mark.asyncio
    async def test_no_fallback_configured(self, controller):
        """Keyed providers without *_FALLBACK variables have nothing to try."""
        adapter = OpenAIAdapter()
        original = UpstreamError("rate limited", status=429)
        primary = ResolvedConfig(key="sk-test", endpoint="https://api.openai.com/v1")

        with pytest.raises(UpstreamError) as exc_info:
            await controller.attempt(adapter, MESSAGES, "gpt-4o-mini", None, primary, original)
        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_without_metrics(self):
        ports = PortRouter({11435: _ok()})
        adapter = OllamaAdapter(transport=httpx.MockTransport(ports))

        result = await FailoverController().attempt(
            adapter, MESSAGES, "llama3", None, PRIMARY, NetworkError("down")
        )
        assert result.completion.text == "from fallback"
