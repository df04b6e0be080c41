"""Prompt builder for the decision and summary turns."""

from typing import Dict, List


ASSISTANT_PERSONA = "You are the Travel Point AI Assistant. You help users with bus bookings and their calendar."

TOOL_CALL_INSTRUCTIONS = """<instructions>
CRITICAL RULES:
1. When the user requests booking info, use "get_booking_details".
2. When the user wants to search buses, use "search_trips".
3. When the user wants to cancel or get a refund, use "cancel_booking".
4. When the user wants to book a ticket, use "book_ticket".
5. When the user asks about their schedule, meetings or reminders, use the calendar tools listed above (if any). Use "primary" as the calendar ID and ISO 8601 date-times with the current year.

To call a tool, reply with ONLY valid JSON in this EXACT format:
{"tool": "tool_name", "args": {"paramName": value}}

EXAMPLES:
User: "Check ticket 5 status"
Assistant: {"tool": "get_booking_details", "args": {"bookingId": 5}}

User: "What's the status of booking number 2?"
Assistant: {"tool": "get_booking_details", "args": {"bookingId": 2}}

User: "Search buses to Coimbatore"
Assistant: {"tool": "search_trips", "args": {"query": "Coimbatore"}}

User: "Cancel my ticket 3"
Assistant: {"tool": "cancel_booking", "args": {"bookingId": 3}}

Only call tools that are listed above. If the user is just chatting (hello, thanks, etc), reply normally without JSON.
</instructions>"""

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful travel assistant. Summarize the tool result in a friendly, conversational way. "
    "If the tool reports an error, explain it plainly and suggest what the user can do next."
)


def build_system_instruction(manifest: str) -> str:
    """Compose the decision-turn system instruction around the tool manifest."""
    return f"{ASSISTANT_PERSONA}\n\n{manifest}\n\n{TOOL_CALL_INSTRUCTIONS}"


def build_decision_messages(manifest: str, user_message: str) -> List[Dict[str, str]]:
    """
    Build the turn that asks the model to reply or emit a tool call.

    Args:
        manifest: Current tool manifest (date block + tools block)
        user_message: Raw user text

    Returns:
        List of message dicts in format: [{"role": "system"|"user", "content": "..."}]
    """
    return [
        {"role": "system", "content": build_system_instruction(manifest)},
        {"role": "user", "content": user_message},
    ]


def build_summary_messages(user_message: str, tool_call_text: str, tool_result: str) -> List[Dict[str, str]]:
    """
    Build the turn that grounds the final answer in the tool result.

    Order (strict):
    1. Summary instruction (system)
    2. Original user message (user)
    3. The model's raw tool call JSON (assistant)
    4. Tool result (user)
    """
    return [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": user_message},
        {"role": "assistant", "content": tool_call_text},
        {
            "role": "user",
            "content": (
                f"Tool returned: {tool_result}\n\n"
                "Please provide a clear, friendly response to the user based on this information."
            ),
        },
    ]
