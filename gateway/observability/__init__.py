"""
Observability module for the Agent Gateway.

Structured logging with per-request correlation ids.
"""
