"""Tests for MCP tool registration and text rendering."""

from __future__ import annotations

import pytest

from spacebot.config import Config, MatrixConfig
from spacebot.core.locations import NameSearchResult, classify_search_term
from spacebot.errors import UpstreamError
from spacebot.mcp_server import create_mcp_server, format_error, render_name_search, render_search_response
from spacebot.models import (
    AvailabilityResponse,
    Facility,
    FacilityInfo,
    Location,
    LocationHierarchy,
    LocationSearchResponse,
    LocationSearchResult,
    SearchMetadata,
)
from spacebot.providers.base import AvailabilityProvider, LocationHierarchyProvider

ROOM_701 = Location(
    id=100003,
    name="Room 701",
    kind="ROOM",
    qualified_name="HQ > Floor 7 > Room 701",
    capacity=8,
    facilities=[Facility(id="whiteboard", name="Whiteboard")],
    is_bookable=True,
)


class FakeProvider(LocationHierarchyProvider, AvailabilityProvider):
    def __init__(self, error=None):
        self.error = error
        self.availability_requests = []

    async def get_location_hierarchy(self, query):
        if self.error:
            raise self.error
        return LocationHierarchy.from_locations([ROOM_701])

    async def get_location(self, location_id):
        return ROOM_701

    async def check_availability(self, request):
        self.availability_requests.append(request)
        return AvailabilityResponse(available=False)


def server_for(provider):
    config = Config(matrix=MatrixConfig(preferred_location=100001))
    return create_mcp_server(config, provider, provider)


async def call(server, name, arguments):
    return await server._tool_manager.call_tool(name, arguments)


# ── registration ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_tools_registered():
    tools = await server_for(FakeProvider()).list_tools()
    assert {t.name for t in tools} == {
        "check_availability",
        "browse_locations",
        "resolve_location",
        "find_location_by_name",
        "find_location_by_requirements",
        "search_by_facilities",
        "list_available_facilities",
    }


# ── tools ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_resolve_location_tool():
    result = await call(server_for(FakeProvider()), "resolve_location", {"reference": "701"})
    assert result == {"reference": "701", "location_id": 100003}


@pytest.mark.asyncio
async def test_resolve_location_tool_reports_errors():
    provider = FakeProvider(error=UpstreamError("Matrix API returned 500", status=500))
    result = await call(server_for(provider), "resolve_location", {"reference": "701"})
    assert result["error"].startswith('Error in resolve_location: Error resolving location "701"')


@pytest.mark.asyncio
async def test_check_availability_rejects_reversed_window():
    provider = FakeProvider()
    result = await call(server_for(provider), "check_availability", {
        "location": 100003,
        "date_from": "2025-03-10T10:00:00",
        "date_to": "2025-03-10T09:00:00",
    })
    assert result == {"error": "date_from must be before date_to."}
    assert provider.availability_requests == []


@pytest.mark.asyncio
async def test_check_availability_tool():
    provider = FakeProvider()
    result = await call(server_for(provider), "check_availability", {
        "location": 100003,
        "date_from": "2025-03-10T09:00:00",
        "date_to": "2025-03-10T10:00:00",
    })
    assert result == {"location_id": 100003, "is_available": False, "slots": []}
    assert provider.availability_requests[0].booking_category == 9000001


@pytest.mark.asyncio
async def test_list_available_facilities_tool():
    text = await call(server_for(FakeProvider()), "list_available_facilities", {})
    assert text.startswith("Available facilities to search for (1 types):\n• Whiteboard")


@pytest.mark.asyncio
async def test_find_location_by_name_requires_name():
    text = await call(server_for(FakeProvider()), "find_location_by_name", {"name": "  "})
    assert text == "Error: Location name is required"


# ── rendering ────────────────────────────────────────────


def test_render_search_response():
    response = LocationSearchResponse(
        results=[LocationSearchResult(
            location=ROOM_701,
            score=1.0,
            match_details=["✓ Whiteboard", "Type: ROOM"],
            facility_info=FacilityInfo(has_whiteboard=True, matched_facilities=["Whiteboard"]),
        )],
        total_matches=3,
        metadata=SearchMetadata(search_time_ms=12),
    )
    text = render_search_response(response)

    assert text.startswith("Found 3 matching locations (showing 1):")
    assert "• [100003] HQ > Floor 7 > Room 701" in text
    assert "  ✓ Whiteboard" in text
    assert "  Matched: Whiteboard" in text
    assert text.endswith("Search completed in 12ms")


def test_render_empty_search_response_lists_suggestions():
    text = render_search_response(LocationSearchResponse(suggestions=["Try a different time slot"]))
    assert "No locations found" in text
    assert "• Try a different time slot" in text


def test_render_single_exact_name_match():
    result = NameSearchResult(
        term=classify_search_term("Room 701"), kind="ROOM", exact=[ROOM_701],
    )
    text = render_name_search("Room 701", result)
    assert text.startswith("✅ Found: Room 701 (ROOM)")
    assert "Ready to book with ID: 100003" in text


def test_render_multiple_name_matches_marks_exact():
    other = Location(id=100004, name="Room 701A", kind="ROOM")
    result = NameSearchResult(
        term=classify_search_term("Room 701"), kind="ROOM", exact=[ROOM_701, ROOM_701], partial=[other],
    )
    lines = render_name_search("Room 701", result).splitlines()
    assert lines[0] == 'Found 3 location(s) matching "Room 701":'
    assert lines[1].startswith("✓ [100003]")
    assert lines[3].startswith("≈ [100004]")


def test_render_no_room_match_hint():
    result = NameSearchResult(term=classify_search_term("701"), kind="ROOM")
    assert render_name_search("701", result).endswith(
        "Room might not exist or try different floor/building."
    )


def test_format_error():
    assert format_error("browse_locations", UpstreamError("down")) == "Error in browse_locations: down"


@pytest.mark.asyncio
async def test_find_location_by_requirements_reports_validation_errors():
    text = await call(server_for(FakeProvider()), "find_location_by_requirements", {
        "requirements": ["whiteboard"],
        "date_from": "2025-03-10T09:00:00",
    })
    assert text == "Error in find_location_by_requirements: date_from and date_to must be given together"
