"""
Provider adapters - one strategy per upstream protocol.

Adding a backend means subclassing `ProviderAdapter` and registering it
in `ADAPTER_TYPES`.
"""

from gateway.llm.adapters.anthropic_adapter import AnthropicAdapter
from gateway.llm.adapters.base import ProviderAdapter
from gateway.llm.adapters.ollama_adapter import OllamaAdapter
from gateway.llm.adapters.openai_adapter import OpenAIAdapter
from gateway.llm.adapters.openrouter_adapter import OpenRouterAdapter

ADAPTER_TYPES: dict[str, type[ProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "ollama": OllamaAdapter,
    "openrouter": OpenRouterAdapter,
}

__all__ = [
    "ADAPTER_TYPES",
    "AnthropicAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "OpenRouterAdapter",
    "ProviderAdapter",
]
