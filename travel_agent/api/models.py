"""API request/response models."""

from typing import List
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request model for a chat message."""
    message: str = Field(..., description="User message text", json_schema_extra={"example": "Check ticket 5 status"})


class ChatResponse(BaseModel):
    """Response model for a chat message."""
    reply: str = Field(..., description="Assistant reply text")


class ToolsHealthResponse(BaseModel):
    """Response model for the tool registry health check."""
    calendar_state: str = Field(..., description="Calendar provider connection state")
    finalized: bool = Field(..., description="Whether the external tool set is settled")
    tools: List[str] = Field(default_factory=list, description="Currently registered tool names")
