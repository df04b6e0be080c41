"""Unit tests for the travel MCP server."""

import pytest
from unittest.mock import AsyncMock, patch

from travel_agent.servers import travel_mcp_server
from travel_agent.servers.travel_mcp_server import ApiKeyError, authenticate, check_api_key_expiry


class TestApiKeyExpiry:
    """Test expiry embedded in generated keys."""

    def test_valid_key(self):
        check_api_key_expiry("tp_2000000000_ab12cd", now=1_900_000_000)

    def test_expired_key(self):
        with pytest.raises(ApiKeyError) as exc_info:
            check_api_key_expiry("tp_1600000000_ab12cd", now=1_900_000_000)

        assert "expired" in str(exc_info.value)

    def test_key_without_expiry(self):
        check_api_key_expiry("legacykey", now=1_900_000_000)
        check_api_key_expiry("tp_notanumber_ab12cd", now=1_900_000_000)


class TestAuthenticate:
    """Test user resolution from TRAVEL_API_KEY."""

    @pytest.mark.asyncio
    async def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(travel_mcp_server.config, "TRAVEL_API_KEY", None)

        with pytest.raises(ApiKeyError) as exc_info:
            await authenticate()

        assert "missing" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_known_key(self, monkeypatch):
        monkeypatch.setattr(travel_mcp_server.config, "TRAVEL_API_KEY", "legacykey")

        with patch.object(travel_mcp_server, "_lookup_user_id", return_value=42) as lookup:
            assert await authenticate() == 42

        lookup.assert_called_once_with("legacykey")

    @pytest.mark.asyncio
    async def test_unknown_key(self, monkeypatch):
        monkeypatch.setattr(travel_mcp_server.config, "TRAVEL_API_KEY", "legacykey")

        with patch.object(travel_mcp_server, "_lookup_user_id", return_value=None):
            with pytest.raises(ApiKeyError):
                await authenticate()


class TestTools:
    """Test the exposed tool functions."""

    @pytest.mark.asyncio
    async def test_get_booking_details_uses_key_owner(self):
        with patch.object(travel_mcp_server, "authenticate", AsyncMock(return_value=42)), \
             patch.object(travel_mcp_server, "booking_tools") as mock_tools:
            mock_tools.get_booking_details = AsyncMock(return_value="Ticket Details:")

            result = await travel_mcp_server.get_booking_details(5)

        assert result == "Ticket Details:"
        mock_tools.get_booking_details.assert_awaited_once_with(5, 42)

    @pytest.mark.asyncio
    async def test_book_ticket_rejects_non_positive_amount(self):
        with patch.object(travel_mcp_server, "authenticate", AsyncMock(return_value=42)), \
             patch.object(travel_mcp_server, "booking_tools") as mock_tools:
            mock_tools.book_ticket = AsyncMock()

            result = await travel_mcp_server.book_ticket(1, 10, 11, 0)

        assert result == "The amount must be greater than zero."
        mock_tools.book_ticket.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_needs_no_key(self):
        with patch.object(travel_mcp_server, "authenticate", AsyncMock(side_effect=ApiKeyError("no"))), \
             patch.object(travel_mcp_server, "booking_tools") as mock_tools:
            mock_tools.search_trips = AsyncMock(return_value="Found 1 upcoming trip(s)")

            assert await travel_mcp_server.search_trips("Chennai") == "Found 1 upcoming trip(s)"
