"""MCP (Model Context Protocol) client for the external calendar provider."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from travel_agent.infra.config import config
from travel_agent.infra.error_handler import ExternalToolError
from travel_agent.infra.metrics import calendar_connection_state
from travel_agent.models.conversation import ConnectionState
from travel_agent.models.tool import ToolDefinition, ToolParameter
from travel_agent.services.tool_registry import ToolRegistry, tool_registry

logger = logging.getLogger(__name__)

_STATE_CODES = {
    ConnectionState.UNCONNECTED: 0,
    ConnectionState.CONNECTING: 1,
    ConnectionState.CONNECTED: 2,
    ConnectionState.DEGRADED: 3,
    ConnectionState.UNAVAILABLE: 4,
}

# Used when the provider accepts the handshake but tool discovery fails.
# Enough for the model to issue a best-effort call, which may still fail.
FALLBACK_CALENDAR_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        name="list-events",
        description="List events from a calendar within a time range",
        parameters=[
            ToolParameter(name="calendarId", type="string", required=True, description="Calendar ID, use 'primary'"),
            ToolParameter(name="timeMin", type="string", required=False, description="Start of range, ISO 8601"),
            ToolParameter(name="timeMax", type="string", required=False, description="End of range, ISO 8601"),
        ],
        source="external",
    ),
    ToolDefinition(
        name="create-event",
        description="Create a new calendar event",
        parameters=[
            ToolParameter(name="calendarId", type="string", required=True, description="Calendar ID, use 'primary'"),
            ToolParameter(name="summary", type="string", required=True, description="Event title"),
            ToolParameter(name="start", type="string", required=True, description="Start time, ISO 8601"),
            ToolParameter(name="end", type="string", required=True, description="End time, ISO 8601"),
            ToolParameter(name="description", type="string", required=False, description="Event description"),
            ToolParameter(name="location", type="string", required=False, description="Event location"),
        ],
        source="external",
    ),
    ToolDefinition(
        name="list-calendars",
        description="List all calendars available to the user",
        parameters=[],
        source="external",
    ),
]


class CalendarConnector:
    """
    Process-wide connection to the calendar capability provider.

    The provider is launched as a subprocess speaking MCP over stdio. The
    connection is attempted at most once per process: a failed or timed out
    handshake leaves the registry with built-in tools only, because the
    provider usually fails for lack of operator-supplied credentials and
    retrying would only relaunch it.

    The session lives in its own background task so the transport contexts
    are entered and exited by the same task; request tasks share the session.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        command: Optional[str] = None,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        handshake_timeout: Optional[float] = None,
        enabled: Optional[bool] = None,
    ):
        self.registry = registry
        self.command = command or config.CALENDAR_MCP_COMMAND
        self.args = list(args if args is not None else config.CALENDAR_MCP_ARGS)
        self.env = env
        self.handshake_timeout = handshake_timeout or config.CALENDAR_MCP_HANDSHAKE_TIMEOUT
        self.enabled = config.CALENDAR_MCP_ENABLED if enabled is None else enabled

        self._state = ConnectionState.UNCONNECTED
        self._lock = asyncio.Lock()
        self._init_task: Optional[asyncio.Task] = None
        self._session_task: Optional[asyncio.Task] = None
        self._shutdown: Optional[asyncio.Event] = None
        self._session: Optional[ClientSession] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def has_session(self) -> bool:
        """True while external tools can actually be called."""
        return self._state.has_session and self._session is not None

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        calendar_connection_state.set(_STATE_CODES[state])

    async def ensure_connected(self, timeout: Optional[float] = None) -> ConnectionState:
        """
        Connect to the provider on first use and return the settled state.

        Concurrent callers share one initialization attempt. A caller that is
        cancelled while waiting does not cancel the attempt itself.

        Args:
            timeout: Handshake timeout in seconds (defaults to the configured one)

        Returns:
            CONNECTED, DEGRADED or UNAVAILABLE
        """
        if self._state.is_settled:
            return self._state

        async with self._lock:
            if self._init_task is None:
                self._init_task = asyncio.create_task(
                    self._initialize(timeout or self.handshake_timeout)
                )

        await asyncio.shield(self._init_task)
        return self._state

    async def _initialize(self, timeout: float) -> None:
        if not self.enabled:
            logger.info("Calendar provider disabled; using built-in tools only")
            self._set_state(ConnectionState.UNAVAILABLE)
            self.registry.finalize()
            return

        self._set_state(ConnectionState.CONNECTING)
        logger.info(f"Launching calendar provider: {self.command} {' '.join(self.args)}")

        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        self._shutdown = asyncio.Event()
        self._session_task = asyncio.create_task(self._run_session(ready))

        try:
            self._session = await asyncio.wait_for(asyncio.shield(ready), timeout=timeout)
        except Exception as e:
            logger.error(
                f"Calendar provider handshake failed ({type(e).__name__}: {e}). "
                f"Continuing with built-in tools only; no reconnection will be attempted."
            )
            self._session_task.cancel()
            if not ready.done():
                ready.cancel()
            self._set_state(ConnectionState.UNAVAILABLE)
            self.registry.finalize()
            return

        try:
            tools = await asyncio.wait_for(self._discover(), timeout=timeout)
            self.registry.merge(tools)
            self._set_state(ConnectionState.CONNECTED)
        except Exception as e:
            logger.error(f"Calendar tool discovery failed ({type(e).__name__}: {e}); using fallback tool list")
            self.registry.merge(FALLBACK_CALENDAR_TOOLS)
            self._set_state(ConnectionState.DEGRADED)

        self.registry.finalize()

    async def _run_session(self, ready: asyncio.Future) -> None:
        try:
            async with self._open_session() as session:
                if not ready.done():
                    ready.set_result(session)
                await self._shutdown.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                logger.error(f"Calendar provider session ended unexpectedly: {e}")
        finally:
            self._session = None

    @asynccontextmanager
    async def _open_session(self):
        """Launch the provider subprocess and perform the MCP handshake."""
        params = StdioServerParameters(
            command=self.command,
            args=self.args,
            # The provider reads its OAuth credentials location from the environment
            env=self.env if self.env is not None else dict(os.environ),
        )
        async with stdio_client(params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                yield session

    async def _discover(self) -> List[ToolDefinition]:
        response = await self._session.list_tools()
        tools = [
            ToolDefinition.from_json_schema(
                name=tool.name,
                description=tool.description,
                input_schema=tool.inputSchema,
            )
            for tool in (response.tools or [])
        ]
        if not tools:
            raise ExternalToolError("Calendar provider returned no tools")
        return tools

    async def call_tool(self, name: str, args: Dict[str, Any]) -> str:
        """
        Execute a provider tool.

        Only text content parts are kept; they are joined with newlines.

        Raises:
            ExternalToolError: If there is no live session or the provider reports an error
        """
        session = self._session
        if session is None or not self._state.has_session:
            raise ExternalToolError("Calendar provider is not connected")

        result = await session.call_tool(name, args or {})
        text = "\n".join(
            part.text for part in (result.content or [])
            if getattr(part, "type", None) == "text" and getattr(part, "text", None)
        )
        if result.isError:
            raise ExternalToolError(text or f"Calendar tool '{name}' failed")
        return text

    async def close(self) -> None:
        """Stop the provider session (application shutdown)."""
        if self._shutdown is not None:
            self._shutdown.set()
        if self._session_task is not None and not self._session_task.done():
            try:
                await asyncio.wait_for(self._session_task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Calendar provider did not shut down in time")


calendar_connector = CalendarConnector(tool_registry)
