"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Chat metrics
chat_requests_total = Counter(
    "chat_requests_total",
    "Total agent chat requests",
    ["outcome"],  # plain_reply | tool_reply | short_circuit | tool_result | apology
)

# LLM metrics
llm_calls_total = Counter(
    "llm_calls_total",
    "Total LLM API calls",
    ["model", "status"],
)

llm_call_duration = Histogram(
    "llm_call_duration_seconds",
    "LLM API call duration in seconds",
    ["model"],
)

# Tool metrics
tool_calls_total = Counter(
    "tool_calls_total",
    "Total tool calls",
    ["tool_name", "source", "status"],
)

tool_call_duration = Histogram(
    "tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool_name", "source"],
)

# Calendar provider connection
calendar_connection_state = Gauge(
    "calendar_connection_state",
    "Calendar provider connection state (0=unconnected, 1=connecting, 2=connected, 3=degraded, 4=unavailable)",
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics response."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
