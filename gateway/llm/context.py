"""
Agent context injection.

Makes the downstream model aware of which agent is talking to it by
appending a delimited block to the system prompt. The block is plain
text because only Anthropic has a first-class system field, and even
there it is filled from this same string.
"""

from __future__ import annotations

from typing import Any

from gateway.llm.models import AgentContext

CONTEXT_OPEN = "[AGENT_CONTEXT]"
CONTEXT_CLOSE = "[/AGENT_CONTEXT]"


def format_agent_context(ctx: AgentContext) -> str:
    return "\n".join([
        CONTEXT_OPEN,
        f"Agent ID: {ctx.agent_id}",
        f"Conversation ID: {ctx.conversation_id}",
        f"Agent Role: {ctx.role}",
        f"Message Priority: {ctx.priority}",
        CONTEXT_CLOSE,
    ])


def inject_agent_context(
    messages: list[dict[str, Any]],
    ctx: AgentContext,
) -> list[dict[str, Any]]:
    """
    Return a copy of `messages` carrying the agent context block.

    The first system message gets the block appended; without one, a
    system message holding only the block is inserted at the front.
    Neither the list nor its message dicts are mutated.
    """
    block = format_agent_context(ctx)
    enhanced = [dict(m) for m in messages]

    for msg in enhanced:
        if msg.get("role") == "system":
            msg["content"] = f"{msg.get('content', '')}\n\n{block}"
            return enhanced

    enhanced.insert(0, {"role": "system", "content": block})
    return enhanced
