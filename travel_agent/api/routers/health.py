"""Health check API router."""

from fastapi import APIRouter

from travel_agent.adapters.mcp_client import calendar_connector
from travel_agent.api.models import ToolsHealthResponse
from travel_agent.infra.metrics import get_metrics_response
from travel_agent.services.tool_registry import tool_registry

router = APIRouter()


@router.get("/health", tags=["Health"])
async def health_check():
    """Combined health check endpoint."""
    return {
        "status": "ok",
        "service": "travel-point-agent",
        "version": "1.0.0",
    }


@router.get("/health/live", tags=["Health"])
async def liveness_probe():
    """Liveness probe - indicates if the process is running."""
    return {"status": "alive"}


@router.get("/health/tools", tags=["Health"], response_model=ToolsHealthResponse)
async def tools_health():
    """Calendar provider state and the tools the agent can currently offer."""
    return ToolsHealthResponse(
        calendar_state=calendar_connector.state.value,
        finalized=tool_registry.is_finalized,
        tools=tool_registry.names(),
    )


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
