"""
Tests for agent context injection.
"""

from __future__ import annotations

from gateway.llm.context import CONTEXT_CLOSE, CONTEXT_OPEN, format_agent_context, inject_agent_context
from gateway.llm.models import AgentContext

CTX = AgentContext(agentId="planner-1", conversationId="c-9", role="orchestrator", priority=5)

BLOCK = (
    "[AGENT_CONTEXT]\n"
    "Agent ID: planner-1\n"
    "Conversation ID: c-9\n"
    "Agent Role: orchestrator\n"
    "Message Priority: 5\n"
    "[/AGENT_CONTEXT]"
)


class TestFormatAgentContext:
    def test_block_format(self):
        assert format_agent_context(CTX) == BLOCK

    def test_delimiters(self):
        block = format_agent_context(CTX)
        assert block.startswith(CONTEXT_OPEN)
        assert block.endswith(CONTEXT_CLOSE)


class TestInjectAgentContext:
    """Appending the block to the system prompt."""

    def test_appends_to_existing_system_message(self):
        messages = [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "Plan the sprint."},
        ]
        enhanced = inject_agent_context(messages, CTX)

        assert len(enhanced) == 2
        assert enhanced[0]["content"] == f"Be terse.\n\n{BLOCK}"
        assert enhanced[1] == messages[1]

    def test_inserts_system_message_when_missing(self):
        messages = [{"role": "user", "content": "Plan the sprint."}]
        enhanced = inject_agent_context(messages, CTX)

        assert enhanced[0] == {"role": "system", "content": BLOCK}
        assert enhanced[1] == messages[0]

    def test_only_first_system_message_touched(self):
        messages = [
            {"role": "system", "content": "One."},
            {"role": "system", "content": "Two."},
            {"role": "user", "content": "Hi"},
        ]
        enhanced = inject_agent_context(messages, CTX)
        assert enhanced[0]["content"].endswith(BLOCK)
        assert enhanced[1]["content"] == "Two."

    def test_input_not_mutated(self):
        messages = [{"role": "system", "content": "Be terse."}]
        inject_agent_context(messages, CTX)
        assert messages == [{"role": "system", "content": "Be terse."}]
