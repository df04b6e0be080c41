"""Tool definition, tool call and tool result models."""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, Any, List, Optional


class ToolParameter(BaseModel):
    """A single named parameter of a tool."""
    name: str = Field(..., description="Parameter name as the model must emit it")
    type: str = Field(default="string", description="'string' | 'number' | 'boolean' | 'object' | 'array'")
    required: bool = Field(default=False)
    description: str = Field(default="")


class ToolDefinition(BaseModel):
    """Tool the model can choose from, built-in or discovered from an external provider."""
    name: str = Field(..., description="Tool name, unique within the registry")
    description: str = Field(..., description="Tool description")
    parameters: List[ToolParameter] = Field(default_factory=list, description="Ordered parameter list")
    source: str = Field(default="builtin", description="'builtin' | 'external'")

    @classmethod
    def from_json_schema(
        cls,
        name: str,
        description: Optional[str],
        input_schema: Optional[Dict[str, Any]],
        source: str = "external",
    ) -> "ToolDefinition":
        """
        Build a definition from a JSON Schema object description.

        Properties keep the order in which the provider declared them.
        """
        schema = input_schema if isinstance(input_schema, dict) else {}
        properties = schema.get("properties") or {}
        required = set(schema.get("required") or [])

        parameters = []
        for param_name, prop in properties.items():
            prop = prop if isinstance(prop, dict) else {}
            param_type = prop.get("type", "string")
            if isinstance(param_type, list):
                # e.g. ["string", "null"]
                param_type = next((t for t in param_type if t != "null"), "string")
            parameters.append(ToolParameter(
                name=param_name,
                type=str(param_type),
                required=param_name in required,
                description=prop.get("description", "") or "",
            ))

        return cls(name=name, description=description or "", parameters=parameters, source=source)


class ToolCall(BaseModel):
    """A structured intent emitted by the model: {"tool": ..., "args": {...}}."""
    tool: str
    args: Dict[str, Any]

    @field_validator("tool")
    @classmethod
    def tool_must_be_named(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("tool name must be non-empty")
        return value.strip()


class ToolResult(BaseModel):
    """Outcome of dispatching a tool call, always representable as text."""
    text: str
    error: Optional[str] = None
    short_circuit: bool = Field(
        default=False,
        description="If True, the text goes straight to the user without a summary turn"
    )
