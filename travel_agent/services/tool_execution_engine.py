"""Tool execution engine that dispatches tool calls to built-in or external executors."""

import asyncio
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from travel_agent.adapters.booking_tools import BookingTools, booking_tools
from travel_agent.adapters.mcp_client import CalendarConnector, calendar_connector
from travel_agent.infra.config import config
from travel_agent.infra.error_handler import ToolArgumentError
from travel_agent.infra.metrics import tool_calls_total, tool_call_duration
from travel_agent.models.tool import ToolCall, ToolResult
from travel_agent.services.tool_registry import ToolRegistry, tool_registry

logger = logging.getLogger(__name__)

UNKNOWN_TOOL_MESSAGE = "I couldn't understand which action to perform. Could you rephrase?"
CALENDAR_REAUTH_MESSAGE = (
    "I couldn't reach your calendar because its authorization has expired or is missing. "
    "An operator needs to re-authenticate the calendar integration before calendar "
    "requests can be completed."
)
TRUNCATION_MARKER = "\n...[truncated]"

# Substrings of provider errors caused by missing or expired calendar credentials
_PROVIDER_AUTH_MARKERS = (
    "invalid_grant",
    "oauth",
    "credential",
    "token",
    "unauthorized",
    "authenticat",
    "google",
)

_LEADING_INT = re.compile(r"^\s*#?\s*([+-]?\d+)")
_LEADING_NUMBER = re.compile(r"^\s*[₹$]?\s*([+-]?\d+(?:\.\d+)?)")


def parse_int(value: Any) -> Optional[int]:
    """
    Parse an identifier the way a lenient parser would: leading digits win.

    Accepts ints, integral floats and strings such as "5", " 12 " or "#7".
    Returns None when no integer can be read.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def parse_amount(value: Any) -> Optional[float]:
    """Parse a positive amount such as 450, "450.50" or "₹450"."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return None
        amount = float(match.group(1))
    else:
        return None
    return amount if amount > 0 else None


def _require_id(args: Dict[str, Any], field: str, message: str) -> int:
    value = parse_int(args.get(field))
    if value is None or value <= 0:
        raise ToolArgumentError(message)
    return value


def truncate_result(text: str, limit: int) -> str:
    """
    Cap external tool output at `limit` characters, marker included.

    The returned text is never longer than the input.
    """
    if len(text) <= limit:
        return text
    if limit <= len(TRUNCATION_MARKER):
        return text[:limit]
    return text[:limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def is_provider_auth_failure(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _PROVIDER_AUTH_MARKERS)


class ToolDispatcher:
    """
    Routes a validated tool call to its executor.

    Built-in booking tools are resolved first through a fixed dispatch table;
    external calendar tools are resolved by name in the registry, while the
    calendar provider is connected or degraded; a session lost after that
    surfaces as an execution error. Every failure becomes a text
    result.
    """

    def __init__(
        self,
        registry: ToolRegistry = tool_registry,
        connector: CalendarConnector = calendar_connector,
        bookings: BookingTools = booking_tools,
        tool_timeout: Optional[float] = None,
        max_external_chars: Optional[int] = None,
    ):
        self.registry = registry
        self.connector = connector
        self.bookings = bookings
        self.tool_timeout = tool_timeout or config.TOOL_EXECUTION_TIMEOUT
        self.max_external_chars = max_external_chars or config.MAX_EXTERNAL_RESULT_CHARS

        self._builtins: Dict[str, Callable[[Dict[str, Any], int], Awaitable[str]]] = {
            "search_trips": self._search_trips,
            "get_booking_details": self._get_booking_details,
            "cancel_booking": self._cancel_booking,
            "book_ticket": self._book_ticket,
        }

    async def execute(self, tool_call: ToolCall, caller_id: int) -> ToolResult:
        """
        Execute a tool call on behalf of a caller.

        Args:
            tool_call: Validated tool call with normalized arguments
            caller_id: Authenticated user id; scopes booking lookups

        Returns:
            ToolResult; short-circuit results go straight to the user
        """
        name = tool_call.tool

        handler = self._builtins.get(name)
        if handler is not None:
            return await self._run(name, "builtin", lambda: handler(tool_call.args, caller_id))

        if self.registry.is_external(name) and self.connector.state.has_session:
            return await self._run(name, "external", lambda: self._call_external(name, tool_call.args))

        logger.warning(f"Model requested unknown or unavailable tool '{name}'")
        tool_calls_total.labels(tool_name=name, source="unknown", status="unknown").inc()
        return ToolResult(text=UNKNOWN_TOOL_MESSAGE, error="unknown_tool", short_circuit=True)

    async def _run(self, name: str, source: str, invoke: Callable[[], Awaitable[str]]) -> ToolResult:
        start_time = time.time()
        try:
            text = await asyncio.wait_for(invoke(), timeout=self.tool_timeout)
        except ToolArgumentError as e:
            tool_calls_total.labels(tool_name=name, source=source, status="invalid_args").inc()
            return ToolResult(text=e.message, error="invalid_arguments", short_circuit=True)
        except Exception as e:
            tool_calls_total.labels(tool_name=name, source=source, status="failure").inc()
            logger.error(f"Tool execution failed for {name}: {type(e).__name__}: {e}", exc_info=True)
            if source == "external" and is_provider_auth_failure(e):
                return ToolResult(text=CALENDAR_REAUTH_MESSAGE, error="provider_auth")
            detail = str(e) or type(e).__name__
            return ToolResult(text=f"Error executing {name}: {detail}", error=detail)
        finally:
            tool_call_duration.labels(tool_name=name, source=source).observe(time.time() - start_time)

        tool_calls_total.labels(tool_name=name, source=source, status="success").inc()
        return ToolResult(text=text or f"{name} completed with no output.")

    async def _call_external(self, name: str, args: Dict[str, Any]) -> str:
        text = await self.connector.call_tool(name, args)
        return truncate_result(text, self.max_external_chars)

    async def _search_trips(self, args: Dict[str, Any], caller_id: int) -> str:
        query = args.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolArgumentError("Which city or bus type should I search for?")
        return await self.bookings.search_trips(query.strip())

    async def _get_booking_details(self, args: Dict[str, Any], caller_id: int) -> str:
        booking_id = _require_id(args, "bookingId", "I need a valid booking ID number to check the status.")
        return await self.bookings.get_booking_details(booking_id, caller_id)

    async def _cancel_booking(self, args: Dict[str, Any], caller_id: int) -> str:
        booking_id = _require_id(args, "bookingId", "I need a valid booking ID number to cancel.")
        return await self.bookings.cancel_booking(booking_id, caller_id)

    async def _book_ticket(self, args: Dict[str, Any], caller_id: int) -> str:
        trip_id = _require_id(args, "tripId", "I need a valid trip ID number to book a ticket.")
        pickup_id = _require_id(args, "pickupId", "I need a valid pickup stop ID number to book a ticket.")
        drop_id = _require_id(args, "dropId", "I need a valid drop stop ID number to book a ticket.")
        amount = parse_amount(args.get("amount"))
        if amount is None:
            raise ToolArgumentError("I need a valid amount to book the ticket.")
        return await self.bookings.book_ticket(trip_id, caller_id, pickup_id, drop_id, amount)


tool_dispatcher = ToolDispatcher()
