"""Recover a {"tool": ..., "args": ...} intent from free-form model output."""

import json
import logging
import re
from typing import Any, List, Optional

from pydantic import ValidationError

from travel_agent.models.tool import ToolCall

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*")
# Control characters, including \r, \n and \t. JSON tolerates the loss of
# whitespace between tokens; raw control characters inside strings are
# invalid JSON anyway.
_CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x1F\x7F]")


def clean_model_output(text: str) -> str:
    """Strip code fences and control characters from model output."""
    clean = _FENCE_PATTERN.sub("", text or "")
    clean = _CONTROL_CHARS_PATTERN.sub(" ", clean)
    return clean.strip()


def _iter_candidates(text: str):
    """
    Yield balanced {...} substrings, rightmost closing brace first.

    For each closing brace, walk backward keeping a balance counter and yield
    every substring whose braces balance to zero, innermost first.
    """
    closing_positions: List[int] = [i for i, ch in enumerate(text) if ch == "}"]
    for end in reversed(closing_positions):
        balance = 0
        for start in range(end, -1, -1):
            ch = text[start]
            if ch == "}":
                balance += 1
            elif ch == "{":
                balance -= 1
                if balance == 0:
                    yield text[start:end + 1]
                elif balance < 0:
                    break


def _has_tool_field(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    tool = value.get("tool")
    return isinstance(tool, str) and bool(tool.strip())


def extract_tool_call_json(raw_text: str) -> Optional[str]:
    """
    Find the model's tool call JSON inside raw output.

    Models wrap JSON in fences, add prose before or after it, and sometimes
    include smaller JSON fragments (example values) inside or before the real
    answer. Candidates are searched from the rightmost closing brace inward and
    the first one that parses and carries a non-empty "tool" field wins.

    Args:
        raw_text: Raw completion text

    Returns:
        The JSON text of the tool call, or None for a plain conversational reply
    """
    clean = clean_model_output(raw_text)
    if "{" not in clean:
        return None

    for candidate in _iter_candidates(clean):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if _has_tool_field(parsed):
            return candidate

    return None


def parse_tool_call(json_text: str) -> Optional[ToolCall]:
    """
    Validate tool call JSON structurally.

    Returns:
        ToolCall, or None if the JSON lacks a usable "tool" or "args"
    """
    try:
        return ToolCall.model_validate(json.loads(json_text))
    except (ValueError, ValidationError) as e:
        logger.info(f"Ignoring malformed tool call: {e}")
        return None
