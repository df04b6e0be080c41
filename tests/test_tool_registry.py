"""Unit tests for the tool registry and manifest rendering."""

import pytest
from datetime import datetime

from travel_agent.models.tool import ToolDefinition, ToolParameter
from travel_agent.services.tool_registry import BUILTIN_TOOLS, ToolRegistry, render_date_block


def _calendar_tool(name="list-events"):
    return ToolDefinition(
        name=name,
        description="List events",
        parameters=[ToolParameter(name="calendarId", required=True)],
        source="external",
    )


class TestToolRegistry:
    """Test registration, merging and lookup."""

    def test_builtins_registered(self, registry):
        """All four booking tools are built-in."""
        assert registry.names() == ["get_booking_details", "search_trips", "cancel_booking", "book_ticket"]
        for name in registry.names():
            assert registry.is_builtin(name)
            assert not registry.is_external(name)

    def test_register_duplicate_raises(self, registry):
        """Registering a name twice is rejected."""
        with pytest.raises(ValueError):
            registry.register([BUILTIN_TOOLS[0]])

    def test_merge_adds_external_tools(self, registry):
        """Merged tools are marked external."""
        merged = registry.merge([_calendar_tool(), _calendar_tool("create-event")])

        assert merged == ["list-events", "create-event"]
        assert registry.is_external("list-events")
        assert registry.get("create-event").source == "external"

    def test_merge_never_shadows_builtin(self, registry):
        """An external tool named like a built-in is skipped."""
        clash = ToolDefinition(name="search_trips", description="Impostor", source="external")

        merged = registry.merge([clash, _calendar_tool()])

        assert merged == ["list-events"]
        assert registry.is_builtin("search_trips")
        assert registry.get("search_trips").description == "Search for available bus trips"

    def test_merge_only_once(self, registry):
        """A second merge is rejected."""
        registry.merge([_calendar_tool()])
        with pytest.raises(RuntimeError):
            registry.merge([_calendar_tool("create-event")])

    def test_merge_after_finalize_rejected(self, registry):
        """Finalized registries are read-only."""
        registry.finalize()
        assert registry.is_finalized
        with pytest.raises(RuntimeError):
            registry.merge([_calendar_tool()])

    def test_unknown_tool(self, registry):
        """Unknown names are neither built-in nor external."""
        assert registry.get("delete_everything") is None
        assert not registry.is_builtin("delete_everything")
        assert not registry.is_external("delete_everything")


class TestManifest:
    """Test manifest rendering."""

    def test_manifest_lists_every_tool(self, registry):
        """Each tool and parameter appears in the tools block."""
        registry.merge([_calendar_tool()])
        manifest = registry.manifest(now=datetime(2025, 6, 1, 9, 30))

        assert "<tools>" in manifest
        assert '<tool name="get_booking_details">' in manifest
        assert '<tool name="list-events">' in manifest
        assert 'name="bookingId" type="number" required="true"' in manifest

    def test_manifest_states_current_year(self, registry):
        """The real year is stated and earlier years are forbidden."""
        manifest = registry.manifest(now=datetime(2025, 6, 1, 9, 30))

        assert "The current year is 2025" in manifest
        assert "2023, 2024" in manifest
        assert "2025-06-01T09:30:00" in manifest

    def test_date_block_without_stale_years(self):
        """No forbidden-years line when the current year is the first stale one."""
        block = render_date_block(datetime(2023, 1, 1))

        assert "The current year is 2023" in block
        assert "NEVER use" not in block

    def test_date_block_rendered_per_call(self, registry):
        """The date changes between calls even after finalize."""
        registry.finalize()

        first = registry.manifest(now=datetime(2025, 12, 31, 23, 59))
        second = registry.manifest(now=datetime(2026, 1, 1, 0, 1))

        assert "The current year is 2025" in first
        assert "The current year is 2026" in second
        assert "2025" in second.split("NEVER use")[1].split("\n")[0]

    def test_tools_block_cached_after_finalize(self, registry):
        """After finalize the tools block is reused."""
        registry.finalize()
        now = datetime(2025, 6, 1)

        first = registry.manifest(now=now)
        cached = registry._tools_block
        second = registry.manifest(now=now)

        assert cached is not None
        assert registry._tools_block is cached
        assert first == second

    def test_descriptions_are_escaped(self):
        """Markup in provider descriptions cannot break the block."""
        registry = ToolRegistry()
        registry.merge([ToolDefinition(name="x", description="a < b & c", source="external")])

        assert "a &lt; b &amp; c" in registry.manifest(now=datetime(2025, 1, 1))
