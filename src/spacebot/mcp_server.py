"""MCP server for spacebot: exposes room and desk search tools for AI agents."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .config import Config
from .core.locations import DeskId, LocationResolver, NameSearchResult, RoomNumber
from .core.search import SearchEngine
from .errors import SpacebotError, ValidationError
from .models import (
    AvailabilityRequest,
    BookingCategory,
    Location,
    LocationQuery,
    LocationSearchRequest,
    LocationSearchResponse,
    iter_locations,
    parse_api_datetime,
)
from .providers.base import AvailabilityProvider, LocationHierarchyProvider

logger = logging.getLogger(__name__)

MAX_NAME_MATCHES = 10


def format_error(tool: str, error: Exception) -> str:
    return f"Error in {tool}: {error}"


def format_location_line(location: Location) -> str:
    parts = [f"[{location.id}]", location.name or "Unknown"]
    if location.kind:
        parts.append(f"({location.kind})")
    if location.qualified_name and location.qualified_name != location.name:
        parts.append(f"- {location.qualified_name}")
    return f"• {' '.join(parts)}"


def render_search_response(response: LocationSearchResponse) -> str:
    """Render ranked results with their explanation lines."""
    if not response.results:
        lines = ["⚠️ No locations found matching your requirements."]
        if response.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"• {s}" for s in response.suggestions)
        return "\n".join(lines)

    blocks = []
    for result in response.results:
        lines = [f"• [{result.location.id}] {result.location.display_name}"]
        lines.extend(f"  {detail}" for detail in result.match_details)
        if result.facility_info and result.facility_info.matched_facilities:
            lines.append(f"  Matched: {', '.join(result.facility_info.matched_facilities)}")
        blocks.append("\n".join(lines))

    return (
        f"Found {response.total_matches} matching locations "
        f"(showing {len(response.results)}):\n\n"
        + "\n\n".join(blocks)
        + f"\n\nSearch completed in {response.metadata.search_time_ms}ms"
    )


def render_name_search(name: str, result: NameSearchResult) -> str:
    matches = result.matches
    if not matches:
        text = f'No locations found matching "{name}"'
        if isinstance(result.term, RoomNumber):
            return text + ". Room might not exist or try different floor/building."
        if isinstance(result.term, DeskId):
            return text + ". Desk might not exist or try the desk bank number (e.g. \"37\" instead of \"37-A\")."
        return text + ". Try browse_locations to see available options."

    if len(result.exact) == 1:
        location = result.exact[0]
        lines = [
            f"✅ Found: {location.name} ({location.kind or 'Unknown'})",
            f"Location ID: {location.id}",
        ]
        if location.qualified_name:
            lines.append(f"Full path: {location.qualified_name}")
        lines.append(f"Ready to book with ID: {location.id}")
        return "\n".join(lines)

    lines = []
    for i, location in enumerate(matches[:MAX_NAME_MATCHES]):
        marker = "✓" if i < len(result.exact) else "≈"
        line = f"{marker} [{location.id}] {location.name} ({location.kind or 'Unknown'})"
        if location.qualified_name:
            line += f" - {location.qualified_name}"
        lines.append(line)
    return (
        f'Found {len(matches)} location(s) matching "{name}":\n'
        + "\n".join(lines)
        + "\n\nUse the ID in square brackets for booking."
    )


def validate_window(date_from: Optional[str], date_to: Optional[str], required: bool = False) -> None:
    """Reject half-open, unparseable or reversed time windows."""
    if not date_from and not date_to and not required:
        return
    if not date_from or not date_to:
        raise ValidationError("date_from and date_to must be given together")
    try:
        start = parse_api_datetime(date_from)
        end = parse_api_datetime(date_to)
    except ValueError:
        raise ValidationError("Invalid date/time format. Use ISO 8601, e.g. 2025-03-10T09:00:00.")
    if start >= end:
        raise ValidationError("date_from must be before date_to.")


def create_mcp_server(
    config: Config,
    locations: LocationHierarchyProvider,
    availability: AvailabilityProvider,
    resolver: LocationResolver | None = None,
    search: SearchEngine | None = None,
):
    """Create and configure the MCP server with location search tools."""
    from mcp.server.fastmcp import FastMCP

    mcp = FastMCP(
        "spacebot",
        instructions="Find and check rooms and desks. "
        "Use find_location_by_requirements() to search by facilities and capacity, "
        "find_location_by_name() for a known room or desk, "
        "then check_availability() for a time window.",
        host=config.mcp.host,
        port=config.mcp.port,
    )

    preferred = config.matrix.preferred_location
    resolver = resolver or LocationResolver(locations, preferred_location_id=preferred)
    search = search or SearchEngine(locations, availability, config.search)
    max_results = config.search.max_results

    @mcp.tool()
    async def check_availability(
        location: Union[int, str],
        date_from: str,
        date_to: str,
        booking_category: Optional[int] = None,
    ) -> dict:
        """Check if a room or desk is free between two times. Returns the free slots.

        Args:
            location: Location ID (>= 100000), room number like "701", or a location name.
            date_from: Start date/time in ISO 8601 format, e.g. 2025-03-10T09:00:00.
            date_to: End date/time in ISO 8601 format.
            booking_category: 9000001 for desks (default) or 9000002 for rooms.
        """
        try:
            validate_window(date_from, date_to, required=True)
        except ValidationError as e:
            return {"error": str(e)}

        try:
            location_id = await resolver.resolve_location_id(location)
            response = await availability.check_availability(AvailabilityRequest(
                location_id=location_id,
                date_from=date_from,
                date_to=date_to,
                booking_category=booking_category or int(BookingCategory.DESK),
            ))
        except SpacebotError as e:
            return {"error": format_error("check_availability", e)}

        return {
            "location_id": location_id,
            "is_available": response.is_available,
            "slots": [
                {
                    "start": s.start.isoformat(),
                    "end": s.end.isoformat(),
                    "display": str(s),
                }
                for s in response.slots
            ],
        }

    @mcp.tool()
    async def browse_locations(parent_id: Optional[int] = None, kind: Optional[str] = None) -> str:
        """Browse the location hierarchy. Slow on large organisations; prefer the search tools.

        Args:
            parent_id: Show the children of this location ID.
            kind: Only show locations of this kind (BUILDING, FLOOR, ROOM, DESK...).
        """
        try:
            hierarchy = await locations.get_location_hierarchy(LocationQuery(
                include_children=True,
                include_facilities=True,
            ))
        except SpacebotError as e:
            return format_error("browse_locations", e)

        found = hierarchy.locations
        if parent_id:
            parent = next((loc for loc in iter_locations(found) if loc.id == parent_id), None)
            found = parent.locations if parent else []
            if not found:
                return f"No child locations found for parent ID {parent_id}"

        if kind:
            found = [loc for loc in found if loc.kind == kind.upper()]

        shown = found[:max_results]
        title = f"Child locations of {parent_id}" if parent_id else "Locations"
        lines = [format_location_line(loc) for loc in shown]
        return f"{title} (showing {len(shown)} of {len(found)}):\n" + "\n".join(lines)

    @mcp.tool()
    async def resolve_location(reference: Union[int, str]) -> dict:
        """Turn a location ID, room number or name into a location ID.

        Args:
            reference: Location ID (>= 100000), room number like "701", or a name like "Room 701".
        """
        if isinstance(reference, str) and not reference.strip():
            return {"error": "Location reference is required."}
        try:
            location_id = await resolver.resolve_location_id(reference)
        except SpacebotError as e:
            return {"error": format_error("resolve_location", e)}
        return {"reference": reference, "location_id": location_id}

    @mcp.tool()
    async def find_location_by_name(name: str, search_type: str = "any") -> str:
        """Find a specific room or desk by name, e.g. "701", "Room 701", "37-A" or "Meeting Room 1".

        Args:
            name: Name or number of the location.
            search_type: "desk", "room" or "any" (default).
        """
        if not name or not name.strip():
            return "Error: Location name is required"
        if search_type not in ("any", "room", "desk"):
            return 'Error: search_type must be "desk", "room" or "any"'
        try:
            result = await resolver.find_locations_by_name(name, search_type)
        except SpacebotError as e:
            return format_error("find_location_by_name", e)
        return render_name_search(name, result)

    @mcp.tool()
    async def find_location_by_requirements(
        query: Optional[str] = None,
        requirements: Optional[list[str]] = None,
        capacity: Optional[int] = None,
        location_kind: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> str:
        """Search rooms and desks by facilities, capacity and availability. Results are ranked and explained.

        Args:
            query: Natural language, e.g. "room for 6 with a screen tomorrow".
            requirements: Facility requirements, e.g. ["adjustable desk", "27 inch screen"].
            capacity: Minimum number of people.
            location_kind: ROOM, DESK, DESK_BANK...
            date_from: Start date/time (ISO 8601). Availability is checked when both dates are given.
            date_to: End date/time (ISO 8601).
            limit: Maximum results (default 10).
        """
        if capacity is not None and capacity < 1:
            return "Error: capacity must be at least 1"
        try:
            validate_window(date_from, date_to)
        except ValidationError as e:
            return format_error("find_location_by_requirements", e)

        request = LocationSearchRequest(
            requirements=requirements or [],
            capacity=capacity,
            location_kind=location_kind.upper() if location_kind else None,
            date_from=date_from,
            date_to=date_to,
            limit=min(limit or config.search.default_limit, max_results),
            parent_location_id=preferred,
            query=query,
        )
        try:
            response = await search.search_locations_by_requirements(request)
        except SpacebotError as e:
            return format_error("find_location_by_requirements", e)
        return render_search_response(response)

    @mcp.tool()
    async def search_by_facilities(facilities: list[str]) -> str:
        """Find rooms or desks that have all of the given facilities.

        Args:
            facilities: Required facilities. Use list_available_facilities() to see options.
        """
        wanted = [f for f in facilities if f and f.strip()]
        if not wanted:
            return "Error: at least one facility is required"
        try:
            found = await search.find_locations_with_facilities(wanted)
        except SpacebotError as e:
            return format_error("search_by_facilities", e)

        lines = [
            f"• [{loc.id}] {loc.name} - {', '.join(f.display_text for f in loc.facilities or [])}"
            for loc in found
        ]
        return f"Found {len(found)} locations with required facilities:\n" + "\n".join(lines)

    @mcp.tool()
    async def list_available_facilities() -> str:
        """List every facility that can be searched for (screens, whiteboards, adjustable desks...)."""
        try:
            hierarchy = await locations.get_location_hierarchy(LocationQuery(
                include_children=True,
                include_facilities=True,
            ))
        except SpacebotError as e:
            return format_error("list_available_facilities", e)

        unique = search.parser.extract_unique_facilities(hierarchy.flatten())
        shown = unique[:max_results]
        text = "\n".join(f"• {f}" for f in shown) if shown else "No facilities found"
        return (
            f"Available facilities to search for ({len(unique)} types):\n{text}\n\n"
            "Use find_location_by_requirements to search for locations with these facilities"
        )

    return mcp
