"""Tests for prompt builder."""

from travel_agent.services.prompt_builder import (
    ASSISTANT_PERSONA,
    SUMMARY_SYSTEM_PROMPT,
    TOOL_CALL_INSTRUCTIONS,
    build_decision_messages,
    build_summary_messages,
)


class TestPromptBuilder:
    """Test decision and summary turn construction."""

    def test_decision_stack_order(self):
        """Persona, then manifest, then the tool-call rules."""
        messages = build_decision_messages("<tools></tools>", "Search buses to Salem")

        system = messages[0]["content"]
        assert messages[0]["role"] == "system"
        assert system.index(ASSISTANT_PERSONA) < system.index("<tools></tools>") < system.index(TOOL_CALL_INSTRUCTIONS)
        assert messages[1] == {"role": "user", "content": "Search buses to Salem"}

    def test_instructions_show_call_format(self):
        assert '{"tool": "tool_name", "args": {"paramName": value}}' in TOOL_CALL_INSTRUCTIONS

    def test_summary_turn(self):
        messages = build_summary_messages(
            "Cancel my ticket 3",
            '{"tool": "cancel_booking", "args": {"bookingId": 3}}',
            "Booking #3 has been cancelled.",
        )

        assert messages[0] == {"role": "system", "content": SUMMARY_SYSTEM_PROMPT}
        assert messages[1] == {"role": "user", "content": "Cancel my ticket 3"}
        assert messages[2]["role"] == "assistant"
        assert messages[2]["content"] == '{"tool": "cancel_booking", "args": {"bookingId": 3}}'
        assert messages[3]["role"] == "user"
        assert messages[3]["content"].startswith("Tool returned: Booking #3 has been cancelled.")
