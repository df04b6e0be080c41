"""Pytest configuration and fixtures."""

import pytest
import os
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LLM_API_KEY", "test-key")
os.environ.setdefault("CALENDAR_MCP_ENABLED", "false")

from travel_agent.models.conversation import ModelEndpoint  # noqa: E402
from travel_agent.services.tool_registry import BUILTIN_TOOLS, ToolRegistry  # noqa: E402


@pytest.fixture
def registry():
    """Fresh registry holding only the built-in tools."""
    registry = ToolRegistry()
    registry.register(BUILTIN_TOOLS)
    return registry


@pytest.fixture
def endpoints():
    """Three endpoints in priority order."""
    return [
        ModelEndpoint(identifier="model-a", priority=1),
        ModelEndpoint(identifier="model-b", priority=2),
        ModelEndpoint(identifier="model-c", priority=3),
    ]
