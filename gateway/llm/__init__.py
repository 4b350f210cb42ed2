"""
LLM Gateway Layer - provider routing and response normalization.

Provides a unified interface for calling four LLM backends (OpenAI,
Anthropic, Ollama, OpenRouter) with per-agent sticky routing, rolling
latency/error metrics and priority-gated failover.

Modules:
- models: ChatRequest, AgentContext, CanonicalCompletion
- context: agent context injection into the message list
- affinity: AffinityRouter - agent → provider instance stickiness
- metrics: LoadMetricsTracker - EWMA latency and error rates
- failover: FailoverController - retry classification and fallback
- router: ProviderRouter - wires all of the above together
- adapters: one strategy per backend protocol
"""
