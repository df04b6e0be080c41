from .conversation import ConnectionState, ModelEndpoint
from .tool import ToolCall, ToolDefinition, ToolParameter, ToolResult

__all__ = [
    "ConnectionState",
    "ModelEndpoint",
    "ToolCall",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
]
