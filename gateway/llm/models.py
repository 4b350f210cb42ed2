"""
Request and response types shared by every adapter.

The request side is Pydantic (validated at the edge, accepts the
camelCase keys callers send over the wire); the response side is plain
dataclasses whose `to_dict()` yields the canonical envelope:

    {
        "choices": [{"message": {"role": "assistant", "content": "..."},
                     "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 30,
                  "total_tokens": 42},
        "agentMetadata": {...}   # only when an AgentContext was supplied
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from gateway.config.providers import provider_for_model

Role = Literal["system", "user", "assistant"]


# ---------------------------------------------------------------------------
# Request Types
# ---------------------------------------------------------------------------

class Message(BaseModel):
    role: Role
    content: str


class ProviderConfig(BaseModel):
    """Per-call credentials and endpoint for one provider."""

    key: Optional[str] = None
    endpoint: Optional[str] = None
    referer: Optional[str] = None   # OpenRouter only
    title: Optional[str] = None     # OpenRouter only


# (name, accepted keys, parser, lower bound, upper bound, lower inclusive)
_PARAM_RULES: tuple[tuple[str, tuple[str, ...], type, float, float, bool], ...] = (
    ("temperature", ("temperature",), float, 0.0, 2.0, True),
    ("max_tokens", ("max_tokens", "maxTokens"), int, 0, float("inf"), False),
    ("top_p", ("top_p", "topP"), float, 0.0, 1.0, True),
    ("frequency_penalty", ("frequency_penalty", "frequencyPenalty"), float, -2.0, 2.0, True),
    ("presence_penalty", ("presence_penalty", "presencePenalty"), float, -2.0, 2.0, True),
)


class ModelParams(BaseModel):
    """Sampling parameters. Every field is optional."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    def to_payload(self) -> dict[str, Any]:
        """Only the parameters that were actually set."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_raw(cls, raw: Optional[dict[str, Any]]) -> "ModelParams":
        """
        Build params from loosely-typed input.

        Accepts snake_case or camelCase keys and string values. Values
        that don't parse or fall outside the provider-accepted range are
        dropped rather than rejected.
        """
        clean: dict[str, Any] = {}
        for name, keys, parser, low, high, inclusive in _PARAM_RULES:
            value = next((raw[k] for k in keys if raw and raw.get(k) is not None), None)
            if value is None:
                continue
            try:
                parsed = parser(float(value)) if parser is int else parser(value)
            except (TypeError, ValueError, OverflowError):
                continue
            above_low = parsed >= low if inclusive else parsed > low
            if above_low and parsed <= high:
                clean[name] = parsed
        return cls(**clean)


class AgentContext(BaseModel):
    """Identifies the calling agent in a multi-agent conversation."""

    model_config = ConfigDict(populate_by_name=True)

    agent_id: str = Field(..., alias="agentId", min_length=1)
    conversation_id: str = Field("", alias="conversationId")
    role: str = ""
    priority: int = Field(3, ge=1, le=5)


class ChatRequest(BaseModel):
    """One unified chat request, independent of the backend."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Message] = Field(..., min_length=1)
    model: str
    config: dict[str, ProviderConfig] = Field(default_factory=dict)
    params: ModelParams = Field(default_factory=ModelParams)
    endpoint: Optional[str] = Field(None, alias="endpointOverride")
    agent_context: Optional[AgentContext] = Field(None, alias="agentContext")
    provider: Optional[str] = None

    def resolved_provider(self) -> str:
        return self.provider or provider_for_model(self.model)

    def provider_config(self, provider: Optional[str] = None) -> ProviderConfig:
        return self.config.get(provider or self.resolved_provider()) or ProviderConfig()

    def message_dicts(self) -> list[dict[str, str]]:
        return [m.model_dump() for m in self.messages]


# ---------------------------------------------------------------------------
# Resolved Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedConfig:
    """Credentials and endpoint after per-call → env → default resolution."""

    key: Optional[str]
    endpoint: str
    referer: Optional[str] = None
    title: Optional[str] = None


# ---------------------------------------------------------------------------
# Canonical Response
# ---------------------------------------------------------------------------

@dataclass
class CompletionMessage:
    content: str = ""
    role: str = "assistant"


@dataclass
class Choice:
    message: CompletionMessage
    finish_reason: Optional[str] = None


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class AgentMetadata:
    """Routing details attached when the caller identified itself."""

    agent_id: str
    conversation_id: str
    role: str
    priority: int
    provider_instance: str
    response_time: float          # milliseconds
    failover: Optional[bool] = None
    original_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "agentId": self.agent_id,
            "conversationId": self.conversation_id,
            "role": self.role,
            "priority": self.priority,
            "providerInstance": self.provider_instance,
            "responseTime": self.response_time,
        }
        if self.failover is not None:
            data["failover"] = self.failover
        if self.original_error is not None:
            data["originalError"] = self.original_error
        return data


@dataclass
class CanonicalCompletion:
    """Normalized completion from any backend."""

    choices: list[Choice]
    usage: Usage = field(default_factory=Usage)
    agent_metadata: Optional[AgentMetadata] = None
    provider: str = ""
    model: str = ""
    raw: Any = None               # Provider-specific response object

    @classmethod
    def single(
        cls,
        content: Optional[str],
        finish_reason: Optional[str],
        *,
        prompt_tokens: Optional[int] = 0,
        completion_tokens: Optional[int] = 0,
        provider: str = "",
        model: str = "",
        raw: Any = None,
    ) -> "CanonicalCompletion":
        return cls(
            choices=[Choice(CompletionMessage(content or ""), finish_reason)],
            usage=Usage(int(prompt_tokens or 0), int(completion_tokens or 0)),
            provider=provider,
            model=model,
            raw=raw,
        )

    @property
    def text(self) -> str:
        return self.choices[0].message.content if self.choices else ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "choices": [
                {
                    "message": {"role": c.message.role, "content": c.message.content},
                    "finish_reason": c.finish_reason,
                }
                for c in self.choices
            ],
            "usage": self.usage.to_dict(),
        }
        if self.agent_metadata is not None:
            data["agentMetadata"] = self.agent_metadata.to_dict()
        return data
