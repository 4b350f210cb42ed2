"""
Structured logging configuration for the Agent Gateway.

Modules log with logging.getLogger(__name__) and an event name as the
message; everything else travels in `extra`:

    logger.warning("llm_primary_failed", extra={
        "provider": "ollama",
        "agent_id": "critic",
        "status": 503,
    })

configure_logging() picks the output from GATEWAY_ENV:
- production: one JSON object per line on stdout
- anything else: colored single-line text on stderr

Both outputs carry the request id bound by ProviderRouter.complete(), and
both mask credential-looking extras (api_key, key, authorization, ...)
so a misplaced `extra={"key": ...}` never writes a secret to the log.
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

PRODUCTION = "production"
MASK = "***"

# ─── Request Context ──────────────────────────────────────────────────

_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "gateway_request_id", default=None
)


def set_request_id(request_id: str) -> contextvars.Token:
    """Bind `request_id` to the current task; returns the token for reset_request_id."""
    return _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def reset_request_id(token: contextvars.Token) -> None:
    _request_id.reset(token)


def clear_request_id() -> None:
    _request_id.set(None)


class ContextFilter(logging.Filter):
    """Stamps the bound request id onto every record that passes through."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        if request_id:
            record.request_id = request_id  # type: ignore[attr-defined]
        return True


# ─── Extras ───────────────────────────────────────────────────────────

# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_SECRET_NAMES = frozenset({"key", "api_key", "apikey", "authorization", "x-api-key", "token"})


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """
    The `extra` fields of `record`, request_id first, secrets masked.
    """
    extras: dict[str, Any] = {}
    request_id = getattr(record, "request_id", None)
    if request_id:
        extras["request_id"] = request_id

    for name, value in record.__dict__.items():
        if name in _RECORD_ATTRS or name.startswith("_") or name == "request_id":
            continue
        extras[name] = MASK if name.lower() in _SECRET_NAMES and value else value
    return extras


# ─── Formatters ───────────────────────────────────────────────────────


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record:

        {"timestamp": "2024-05-01T12:00:00.123456+00:00", "level": "INFO",
         "logger": "gateway.llm.router", "message": "llm_routed",
         "request_id": "5f0c2a91b7de", "provider": "anthropic", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, value in record_extras(record).items():
            entry[name] = value if _is_json_safe(value) else str(value)

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _is_json_safe(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


class DevFormatter(logging.Formatter):
    """
    Readable single-line output for a terminal:

        12:00:01 WARNING  gateway.llm.router  llm_primary_failed  request_id=5f0c.. provider=ollama status=503
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        fields = " ".join(
            f"{name}={value}"
            for name, value in record_extras(record).items()
            if value is not None
        )
        line = (
            f"{self.DIM}{self.formatTime(record, '%H:%M:%S')}{self.RESET} "
            f"{color}{record.levelname:<8}{self.RESET} "
            f"{record.name}  {record.getMessage()}"
        )
        if fields:
            line += f"  {self.DIM}{fields}{self.RESET}"
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ─── Setup ────────────────────────────────────────────────────────────

# Loggers that are chatty at INFO and only repeat what the adapters log
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")


def configure_logging(
    env: Optional[str] = None,
    level: int = logging.INFO,
) -> logging.Handler:
    """
    Replace the root logger's handlers with a single gateway handler.

    Args:
        env: "production" for JSON on stdout; anything else gives the
             colored dev output on stderr. Defaults to GATEWAY_ENV.
        level: Root log level.

    Returns:
        The installed handler.
    """
    env = (env or os.environ.get("GATEWAY_ENV") or "development").strip().lower()

    if env == PRODUCTION:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DevFormatter())
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return handler
