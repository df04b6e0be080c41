"""Tool registry: built-in booking tools plus externally discovered tools."""

import logging
from datetime import datetime
from typing import Dict, List, Optional
from xml.sax.saxutils import escape, quoteattr

from travel_agent.models.tool import ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)

# Years the completion models keep falling back to from their training data
FIRST_STALE_YEAR = 2023


BUILTIN_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        name="get_booking_details",
        description="Get status and details of a specific booking",
        parameters=[
            ToolParameter(name="bookingId", type="number", required=True, description="The booking ID to check"),
        ],
    ),
    ToolDefinition(
        name="search_trips",
        description="Search for available bus trips",
        parameters=[
            ToolParameter(
                name="query",
                type="string",
                required=True,
                description="Search query with city names or bus type",
            ),
        ],
    ),
    ToolDefinition(
        name="cancel_booking",
        description="Cancel a booking and process refund",
        parameters=[
            ToolParameter(name="bookingId", type="number", required=True, description="The booking ID to cancel"),
        ],
    ),
    ToolDefinition(
        name="book_ticket",
        description="Book a new ticket",
        parameters=[
            ToolParameter(name="tripId", type="number", required=True, description="Trip ID to book"),
            ToolParameter(name="pickupId", type="number", required=True, description="Pickup stop ID"),
            ToolParameter(name="dropId", type="number", required=True, description="Drop stop ID"),
            ToolParameter(name="amount", type="number", required=True, description="Amount to pay"),
        ],
    ),
]


def render_date_block(now: datetime) -> str:
    """
    Render the current date and year as explicit text.

    Models cannot infer "today" and tend to emit years from their training
    data, so the real year is stated and the stale ones are forbidden.
    """
    stale_years = [str(year) for year in range(FIRST_STALE_YEAR, now.year)]
    lines = [
        "<current_date>",
        f"Current date and time: {now.strftime('%A, %B %d, %Y %H:%M')} ({now.strftime('%Y-%m-%dT%H:%M:%S')})",
        f"The current year is {now.year}. Every date you produce must use {now.year} "
        f"or later unless the user explicitly names another year.",
    ]
    if stale_years:
        lines.append(f"NEVER use the years {', '.join(stale_years)} for upcoming dates; they are in the past.")
    lines.append("</current_date>")
    return "\n".join(lines)


def render_tools_block(tools: List[ToolDefinition]) -> str:
    """Render tool definitions as the <tools> block of the system instruction."""
    lines = ["<tools>"]
    for tool in tools:
        lines.append(f"  <tool name={quoteattr(tool.name)}>")
        lines.append(f"    <description>{escape(tool.description)}</description>")
        lines.append("    <parameters>")
        for param in tool.parameters:
            lines.append(
                f"      <parameter name={quoteattr(param.name)} type={quoteattr(param.type)} "
                f"required=\"{'true' if param.required else 'false'}\">{escape(param.description)}</parameter>"
            )
        lines.append("    </parameters>")
        lines.append("  </tool>")
    lines.append("</tools>")
    return "\n".join(lines)


class ToolRegistry:
    """
    Holds every tool the model may call.

    Built-ins are registered once at startup. External tools are merged at
    most once, after discovery against the capability provider (or its
    fallback list). Once finalized the registry is read-only and the tools
    block of the manifest is cached.
    """

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}
        self._merged = False
        self._finalized = False
        self._tools_block: Optional[str] = None

    def register(self, builtins: List[ToolDefinition]) -> None:
        """
        Register built-in tools.

        Raises:
            ValueError: If a name is already registered
        """
        for tool in builtins:
            if tool.name in self._tools:
                raise ValueError(f"Tool '{tool.name}' is already registered")
            self._tools[tool.name] = tool.model_copy(update={"source": "builtin"})
        self._tools_block = None

    def merge(self, external: List[ToolDefinition]) -> List[str]:
        """
        Merge externally discovered tools.

        External entries never shadow built-ins: colliding names are skipped.

        Args:
            external: Discovered (or fallback) tool definitions

        Returns:
            Names that were actually merged

        Raises:
            RuntimeError: If external tools were already merged or the registry is finalized
        """
        if self._merged or self._finalized:
            raise RuntimeError("External tools can only be merged once")

        merged = []
        for tool in external:
            if tool.name in self._tools:
                logger.warning(f"Skipping external tool '{tool.name}': name already registered")
                continue
            self._tools[tool.name] = tool.model_copy(update={"source": "external"})
            merged.append(tool.name)

        self._merged = True
        self._tools_block = None
        logger.info(f"Merged {len(merged)} external tools: {merged}")
        return merged

    def finalize(self) -> None:
        """Mark the external tool set as settled; no further merges are accepted."""
        self._finalized = True

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def is_builtin(self, name: str) -> bool:
        tool = self._tools.get(name)
        return tool is not None and tool.source == "builtin"

    def is_external(self, name: str) -> bool:
        tool = self._tools.get(name)
        return tool is not None and tool.source == "external"

    def names(self) -> List[str]:
        return list(self._tools)

    def tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def manifest(self, now: Optional[datetime] = None) -> str:
        """
        Render the capability manifest embedded in the system instruction.

        The date block is rendered on every call. The tools block is
        regenerated per call until the registry is finalized, then cached.

        Args:
            now: Wall-clock time to state (defaults to the local current time)

        Returns:
            Manifest text
        """
        now = now or datetime.now()
        if self._finalized and self._tools_block is not None:
            tools_block = self._tools_block
        else:
            tools_block = render_tools_block(self.tools())
            if self._finalized:
                self._tools_block = tools_block
        return f"{render_date_block(now)}\n\n{tools_block}"


tool_registry = ToolRegistry()
tool_registry.register(BUILTIN_TOOLS)
