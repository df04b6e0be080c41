"""FastAPI application for the Travel Point agent."""

import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from travel_agent.infra.logging import app_logger
from travel_agent.infra.middleware import RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    app_logger.info("Application starting up")

    yield

    app_logger.info("Application shutting down")

    # Stop the calendar provider subprocess, if one was launched
    from travel_agent.adapters.mcp_client import calendar_connector
    await calendar_connector.close()

    # Close database connections
    from travel_agent.infra.database import engine
    engine.dispose()


app = FastAPI(
    title="Travel Point Agent API",
    description="""
    Conversational travel agent for bus trips and bookings.

    The agent answers free-text messages, searching trips and looking up,
    booking or cancelling tickets for the calling user, and can reach the
    user's calendar when the calendar integration is configured.

    ## Authentication

    The caller is identified by the `X-User-ID` header set by the gateway.
    """,
    version="1.0.0",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Chat",
            "description": "Talk to the travel agent",
        },
        {
            "name": "Health",
            "description": "Health check and monitoring endpoints",
        },
    ],
)

app.add_middleware(RequestLoggingMiddleware)

from travel_agent.api.routers import chat, health  # noqa: E402

app.include_router(chat.router)
app.include_router(health.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures under the request id so the reply can be traced."""
    error_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    app_logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"error_id": error_id},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error. Error ID: {error_id}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
