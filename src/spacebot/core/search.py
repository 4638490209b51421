"""Ranked location search by facilities, capacity and availability."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from ..config import SearchConfig
from ..models import (
    AvailabilityInfo,
    AvailabilityRequest,
    BookingCategory,
    FacilityInfo,
    Location,
    LocationKind,
    LocationQuery,
    LocationSearchRequest,
    LocationSearchResponse,
    LocationSearchResult,
    SearchMetadata,
)
from ..providers.base import AvailabilityProvider, LocationHierarchyProvider
from .facilities import FacilityTextParser

logger = logging.getLogger(__name__)

EXACT_CAPACITY_BOOST = 1.2
UNAVAILABLE_PENALTY = 0.5
HOURS_RE = re.compile(r"(\d+)\s*hour", re.IGNORECASE)
API_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def parse_time_window(query: str, now: datetime) -> tuple[str | None, str | None]:
    """Coarse "now"/"today"/"tomorrow" detection.

    "now"/"today" start at `now` and last "N hours" or one hour.
    "tomorrow" is 09:00-17:00 on the next day and wins over "now".
    Times are formatted as local wall-clock strings without an offset.
    """
    lower = query.lower()
    start = end = None

    if "now" in lower or "today" in lower:
        hours = HOURS_RE.search(query)
        start = now
        end = now + timedelta(hours=int(hours.group(1)) if hours else 1)

    if "tomorrow" in lower:
        start = (now + timedelta(days=1)).replace(hour=9, minute=0, second=0, microsecond=0)
        end = start.replace(hour=17)

    if start is None or end is None:
        return None, None
    return start.strftime(API_DATETIME_FORMAT), end.strftime(API_DATETIME_FORMAT)


def fits_capacity(location: Location, capacity: int) -> bool:
    if location.kind == LocationKind.ROOM:
        return location.capacity is not None and location.capacity >= capacity
    if location.kind == LocationKind.DESK:
        return capacity <= 1
    return location.capacity is None or location.capacity >= capacity


class SearchEngine:
    """Finds bookable spaces matching requirements and explains the ranking."""

    def __init__(
        self,
        locations: LocationHierarchyProvider,
        availability: AvailabilityProvider,
        config: SearchConfig | None = None,
        parser: FacilityTextParser | None = None,
    ):
        self.locations = locations
        self.availability = availability
        self.config = config or SearchConfig()
        self.parser = parser or FacilityTextParser()
        self.tz = ZoneInfo(self.config.timezone)

    async def search_locations_by_requirements(
        self, request: LocationSearchRequest
    ) -> LocationSearchResponse:
        started = time.monotonic()
        applied_filters: list[str] = []

        explicit = [r for r in request.requirements if r and r.strip()]
        requirements = list(explicit)
        capacity = request.capacity if request.capacity and request.capacity > 0 else None

        if request.query:
            for term in self.parser.extract_requirements(request.query):
                if term not in requirements:
                    requirements.append(term)
            if capacity is None:
                capacity = self.parser.extract_capacity(request.query) or None

        hierarchy = await self.locations.get_location_hierarchy(LocationQuery(
            parent_id=request.parent_location_id,
            include_children=True,
            include_facilities=True,
            is_bookable=True,
        ))
        all_locations = hierarchy.flatten()
        candidates = [loc for loc in all_locations if loc.is_bookable is not False]

        if request.location_kind:
            candidates = [loc for loc in candidates if loc.kind == request.location_kind]
            applied_filters.append(f"kind:{request.location_kind}")

        if capacity:
            candidates = [loc for loc in candidates if fits_capacity(loc, capacity)]
            applied_filters.append(f"capacity>={capacity}")

        if requirements:
            applied_filters.append(f"facilities:{','.join(requirements)}")

        scored: list[LocationSearchResult] = []
        for location in candidates:
            result = self._score(location, requirements, bool(explicit), capacity)
            if result is not None:
                scored.append(result)

        scored.sort(key=lambda r: r.score, reverse=True)
        results = scored[:request.limit] if request.limit and request.limit > 0 else list(scored)

        availability_checked = 0
        if request.date_from and request.date_to:
            semaphore = asyncio.Semaphore(max(1, self.config.availability_concurrency))
            await asyncio.gather(*(
                self._annotate_availability(result, request.date_from, request.date_to, semaphore)
                for result in results
            ))
            availability_checked = len(results)
            results.sort(key=lambda r: r.score, reverse=True)

        response = LocationSearchResponse(
            results=results,
            total_matches=len(scored),
            metadata=SearchMetadata(
                search_time_ms=int((time.monotonic() - started) * 1000),
                locations_searched=len(all_locations),
                availability_checked=availability_checked,
                applied_filters=applied_filters,
            ),
        )
        if not results:
            response.suggestions = self._suggestions(request, requirements, capacity)
        logger.info(
            "Search matched %d of %d locations (filters: %s)",
            response.total_matches, len(all_locations), ", ".join(applied_filters) or "none",
        )
        return response

    def _score(
        self,
        location: Location,
        requirements: list[str],
        has_explicit: bool,
        capacity: int | None,
    ) -> LocationSearchResult | None:
        score = 1.0
        details: list[str] = []
        facilities = location.facilities or []

        if requirements:
            # Caller-supplied requirements exclude, query-derived ones only down-rank
            if has_explicit and not facilities:
                return None
            match = self.parser.match_aggregated(facilities, requirements)
            if has_explicit and not match.matches:
                return None
            score *= match.score
            details.extend(match.details)

        facility_info = None
        if facilities:
            _, profile = self.parser.parse_facilities(facilities)
            matched = self.parser.match_simple(facilities, requirements).matched_facilities
            facility_info = FacilityInfo.from_profile(profile, matched)

        actual = location.effective_capacity
        if capacity and actual == capacity:
            score *= EXACT_CAPACITY_BOOST
            details.append(f"✓ Exact capacity match ({capacity})")
        elif capacity and actual and actual >= capacity:
            details.append(f"✓ Capacity {actual} (fits {capacity})")

        if location.kind:
            details.append(f"Type: {location.kind}")
        if location.qualified_name:
            details.append(f"Location: {location.qualified_name}")

        return LocationSearchResult(
            location=location,
            score=score,
            match_details=details,
            facility_info=facility_info,
        )

    async def _annotate_availability(
        self,
        result: LocationSearchResult,
        date_from: str,
        date_to: str,
        semaphore: asyncio.Semaphore,
    ) -> None:
        request = AvailabilityRequest(
            location_id=result.location.id,
            date_from=date_from,
            date_to=date_to,
            booking_category=int(BookingCategory.for_kind(result.location.kind)),
        )
        async with semaphore:
            try:
                availability = await self.availability.check_availability(request)
            except Exception as e:
                logger.warning("Could not check availability for location %s: %s", result.location.id, e)
                result.match_details.append("⚠ Could not check availability")
                return

        result.availability = AvailabilityInfo(
            is_available=availability.is_available,
            available_slots=availability.slots,
        )
        if availability.is_available:
            result.match_details.append("✓ Available at requested time")
        else:
            result.match_details.append("✗ Not available at requested time")
            result.score *= UNAVAILABLE_PENALTY

    def _suggestions(
        self,
        request: LocationSearchRequest,
        requirements: list[str],
        capacity: int | None,
    ) -> list[str]:
        suggestions = []
        if requirements:
            suggestions.append(f"Remove some facility requirements ({', '.join(requirements)})")
        if capacity:
            suggestions.append(f"Try a capacity smaller than {capacity}")
        if request.location_kind:
            suggestions.append(f"Drop the location kind filter ({request.location_kind})")
        if request.parent_location_id:
            suggestions.append("Search outside the preferred location")
        if request.date_from and request.date_to:
            suggestions.append("Try a different time slot")
        if not suggestions:
            suggestions.append("Use browse_locations to see what can be booked")
        return suggestions

    async def search_by_query(self, query: str, now: datetime | None = None) -> LocationSearchResponse:
        """Free-text search: "room for 6 with a screen tomorrow"."""
        lower = query.lower()
        location_kind = None
        if "room" in lower:
            location_kind = LocationKind.ROOM.value
        elif "desk" in lower:
            location_kind = LocationKind.DESK.value

        date_from, date_to = parse_time_window(query, now or datetime.now(self.tz))

        return await self.search_locations_by_requirements(LocationSearchRequest(
            requirements=self.parser.extract_requirements(query),
            capacity=self.parser.extract_capacity(query),
            location_kind=location_kind,
            date_from=date_from,
            date_to=date_to,
            query=query,
            limit=self.config.default_limit,
        ))

    async def find_locations_with_facilities(self, facilities: list[str]) -> list[Location]:
        response = await self.search_locations_by_requirements(LocationSearchRequest(
            requirements=facilities,
            limit=self.config.facility_search_limit,
        ))
        return [r.location for r in response.results]
