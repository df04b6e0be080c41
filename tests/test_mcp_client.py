"""Unit tests for the calendar MCP connector."""

import asyncio
import pytest
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from travel_agent.adapters.mcp_client import FALLBACK_CALENDAR_TOOLS, CalendarConnector
from travel_agent.infra.error_handler import ExternalToolError
from travel_agent.models.conversation import ConnectionState


def _listed_tools():
    return SimpleNamespace(tools=[
        SimpleNamespace(
            name="list-events",
            description="List calendar events",
            inputSchema={
                "type": "object",
                "properties": {
                    "calendarId": {"type": "string", "description": "Calendar ID"},
                    "timeMin": {"type": ["string", "null"]},
                },
                "required": ["calendarId"],
            },
        ),
        SimpleNamespace(name="create-event", description=None, inputSchema={}),
    ])


def _fake_open(session, delay=0.0, launches=None, error=None):
    @asynccontextmanager
    async def open_session():
        if launches is not None:
            launches.append(1)
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        yield session
    return open_session


class TestCalendarConnector:
    """Test connection lifecycle and tool calls."""

    @pytest.fixture
    def session(self):
        """Fake MCP client session."""
        session = MagicMock()
        session.list_tools = AsyncMock(return_value=_listed_tools())
        session.call_tool = AsyncMock()
        return session

    @pytest.fixture
    def connector(self, registry):
        """Enabled connector that never launches a real subprocess."""
        return CalendarConnector(registry, command="fake-provider", args=[], handshake_timeout=1.0, enabled=True)

    @pytest.mark.asyncio
    async def test_connect_merges_discovered_tools(self, connector, registry, session):
        """A successful handshake and discovery lead to CONNECTED."""
        connector._open_session = _fake_open(session)

        state = await connector.ensure_connected()

        assert state == ConnectionState.CONNECTED
        assert connector.has_session
        assert registry.is_finalized
        assert registry.is_external("list-events")
        params = registry.get("list-events").parameters
        assert [(p.name, p.type, p.required) for p in params] == [
            ("calendarId", "string", True),
            ("timeMin", "string", False),
        ]
        await connector.close()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_handshake(self, connector, session):
        """Concurrent first requests launch the provider exactly once."""
        launches = []
        connector._open_session = _fake_open(session, delay=0.05, launches=launches)

        states = await asyncio.gather(*(connector.ensure_connected() for _ in range(5)))

        assert len(launches) == 1
        assert session.list_tools.await_count == 1
        assert set(states) == {ConnectionState.CONNECTED}
        await connector.close()

    @pytest.mark.asyncio
    async def test_handshake_timeout_is_unavailable(self, connector, registry, session):
        """A slow provider is abandoned and never retried."""
        launches = []
        connector._open_session = _fake_open(session, delay=5.0, launches=launches)

        state = await connector.ensure_connected(timeout=0.05)

        assert state == ConnectionState.UNAVAILABLE
        assert not connector.has_session
        assert registry.is_finalized
        assert registry.names() == ["get_booking_details", "search_trips", "cancel_booking", "book_ticket"]

        assert await connector.ensure_connected() == ConnectionState.UNAVAILABLE
        assert len(launches) == 1

    @pytest.mark.asyncio
    async def test_handshake_error_is_unavailable(self, connector, session):
        """A provider that fails to start leaves built-ins only."""
        connector._open_session = _fake_open(session, error=RuntimeError("missing credentials"))

        assert await connector.ensure_connected() == ConnectionState.UNAVAILABLE
        session.list_tools.assert_not_called()

    @pytest.mark.asyncio
    async def test_discovery_failure_is_degraded(self, connector, registry, session):
        """Failed discovery merges the fallback tool list."""
        session.list_tools.side_effect = RuntimeError("boom")
        connector._open_session = _fake_open(session)

        state = await connector.ensure_connected()

        assert state == ConnectionState.DEGRADED
        assert connector.has_session
        for tool in FALLBACK_CALENDAR_TOOLS:
            assert registry.is_external(tool.name)
        await connector.close()

    @pytest.mark.asyncio
    async def test_empty_discovery_is_degraded(self, connector, registry, session):
        session.list_tools.return_value = SimpleNamespace(tools=[])
        connector._open_session = _fake_open(session)

        assert await connector.ensure_connected() == ConnectionState.DEGRADED
        assert registry.is_external("list-calendars")
        await connector.close()

    @pytest.mark.asyncio
    async def test_disabled_provider_is_unavailable(self, registry, session):
        """A disabled provider is never launched."""
        connector = CalendarConnector(registry, command="fake-provider", args=[], enabled=False)
        launches = []
        connector._open_session = _fake_open(session, launches=launches)

        assert await connector.ensure_connected() == ConnectionState.UNAVAILABLE
        assert launches == []
        assert registry.is_finalized

    @pytest.mark.asyncio
    async def test_call_tool_joins_text_parts(self, connector, session):
        """Only text parts are kept, joined with newlines."""
        session.call_tool.return_value = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Event 1"),
                SimpleNamespace(type="image", data="..."),
                SimpleNamespace(type="text", text="Event 2"),
            ],
            isError=False,
        )
        connector._open_session = _fake_open(session)
        await connector.ensure_connected()

        result = await connector.call_tool("list-events", {"calendarId": "primary"})

        assert result == "Event 1\nEvent 2"
        session.call_tool.assert_awaited_once_with("list-events", {"calendarId": "primary"})
        await connector.close()

    @pytest.mark.asyncio
    async def test_call_tool_error_result_raises(self, connector, session):
        session.call_tool.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="invalid_grant: token expired")],
            isError=True,
        )
        connector._open_session = _fake_open(session)
        await connector.ensure_connected()

        with pytest.raises(ExternalToolError) as exc_info:
            await connector.call_tool("list-events", {})

        assert "invalid_grant" in str(exc_info.value)
        await connector.close()

    @pytest.mark.asyncio
    async def test_call_tool_without_session_raises(self, connector):
        with pytest.raises(ExternalToolError):
            await connector.call_tool("list-events", {})

    @pytest.mark.asyncio
    async def test_close_ends_session(self, connector, session):
        connector._open_session = _fake_open(session)
        await connector.ensure_connected()

        await connector.close()

        assert not connector.has_session
