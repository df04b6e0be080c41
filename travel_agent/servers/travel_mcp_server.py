"""MCP stdio server exposing the booking tools to external MCP clients.

Run with ``python -m travel_agent.servers.travel_mcp_server``. The acting user
is resolved from the TRAVEL_API_KEY environment variable, so the server is
launched per user by the MCP client (for example a desktop assistant).

Logging goes to stderr: stdout carries the MCP protocol.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP
from sqlalchemy import text

from travel_agent.adapters.booking_tools import booking_tools
from travel_agent.infra.config import config

logger = logging.getLogger(__name__)

mcp = FastMCP("TravelPoint-Agent")


class ApiKeyError(Exception):
    """The configured API key is missing, expired or unknown."""


def check_api_key_expiry(api_key: str, now: Optional[float] = None) -> None:
    """
    Reject expired keys.

    Generated keys look like ``<prefix>_<expiryEpochSeconds>_<random>``; keys
    in any other format carry no expiry and pass.

    Raises:
        ApiKeyError: If the key has expired
    """
    parts = api_key.split("_")
    if len(parts) != 3 or not parts[1].isdigit():
        return

    expiry = int(parts[1])
    current = time.time() if now is None else now
    if current > expiry:
        expired_on = datetime.fromtimestamp(expiry).strftime("%Y-%m-%d %H:%M")
        raise ApiKeyError(f"Access denied: your API key expired on {expired_on}. Please generate a new one.")


def _lookup_user_id(api_key: str) -> Optional[int]:
    from travel_agent.infra.database import get_db_session

    with get_db_session() as session:
        row = session.execute(
            text("SELECT user_id FROM users WHERE api_key = :api_key"),
            {"api_key": api_key},
        ).fetchone()
    return row.user_id if row else None


async def authenticate() -> int:
    """
    Resolve the user behind TRAVEL_API_KEY.

    Returns:
        The user id owning the key

    Raises:
        ApiKeyError: If the key is missing, expired or unknown
    """
    api_key = config.TRAVEL_API_KEY
    if not api_key:
        raise ApiKeyError("Configuration error: TRAVEL_API_KEY is missing.")

    check_api_key_expiry(api_key)

    user_id = await asyncio.to_thread(_lookup_user_id, api_key)
    if user_id is None:
        raise ApiKeyError("Access denied: API key is invalid.")
    return user_id


@mcp.tool()
async def search_trips(query: str) -> str:
    """Search upcoming bus trips by city name or bus type."""
    logger.info(f"search_trips called with query={query!r}")
    return await booking_tools.search_trips(query)


@mcp.tool()
async def get_booking_details(bookingId: int) -> str:
    """Get status and details of one of your bookings."""
    user_id = await authenticate()
    return await booking_tools.get_booking_details(bookingId, user_id)


@mcp.tool()
async def book_ticket(tripId: int, pickupId: int, dropId: int, amount: float) -> str:
    """Book a ticket on a trip between a pickup stop and a drop stop."""
    user_id = await authenticate()
    if amount <= 0:
        return "The amount must be greater than zero."
    return await booking_tools.book_ticket(tripId, user_id, pickupId, dropId, amount)


@mcp.tool()
async def cancel_booking(bookingId: int) -> str:
    """Cancel one of your bookings and process the refund."""
    user_id = await authenticate()
    return await booking_tools.cancel_booking(bookingId, user_id)


def main() -> None:
    from travel_agent.infra.logging import setup_logging

    setup_logging()
    logger.info("Travel MCP server starting on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
