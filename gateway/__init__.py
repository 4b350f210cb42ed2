"""
Agent Gateway - one chat request in, any of four LLM backends out.

Sub-packages:
- config: provider defaults, YAML configuration loading
- llm: adapters, affinity routing, load metrics, failover, the router
- observability: structured logging
"""
