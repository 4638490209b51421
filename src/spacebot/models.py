"""Core data models for spacebot."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class LocationKind(str, Enum):
    """Known kinds of location hierarchy nodes."""

    BUILDING = "BUILDING"
    FLOOR = "FLOOR"
    ZONE = "ZONE"
    ROOM = "ROOM"
    DESK = "DESK"
    DESK_BANK = "DESK_BANK"


class BookingCategory(int, Enum):
    """Upstream booking categories."""

    DESK = 9000001
    ROOM = 9000002

    @classmethod
    def for_kind(cls, kind: str | None) -> "BookingCategory":
        if kind == LocationKind.ROOM:
            return cls.ROOM
        return cls.DESK


def facility_id_from_text(text: str) -> str:
    """Derive a stable facility id from its label."""
    slug = re.sub(r"[^\w\s]", "", text.lower())
    return re.sub(r"\s+", "_", slug)[:50]


@dataclass
class Facility:
    """An amenity attached to a location."""

    id: str
    name: str = ""
    category: str = ""
    text: str | None = None

    @property
    def display_text(self) -> str:
        return self.text or self.name or ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Facility":
        name = data.get("name") or ""
        text = data.get("text")
        return cls(
            id=str(data.get("id") or facility_id_from_text(text or name)),
            name=name,
            category=data.get("category") or "",
            text=text,
        )


@dataclass
class ParsedFacility:
    """Structured reading of a facility label."""

    type: str
    category: str
    attributes: dict[str, Any] = field(default_factory=dict)
    original_text: str = ""


@dataclass
class AggregatedFacilityProfile:
    """All parsed facilities of one location folded together."""

    has_screen: bool = False
    screen_size: int | None = None
    adjustable: bool = False
    mechanism: str | None = None
    has_video_conference: bool = False
    has_whiteboard: bool = False
    has_phone: bool = False
    is_accessible: bool = False
    has_air_conditioning: bool = False
    has_wifi: bool = False
    has_power_outlets: bool = False


@dataclass
class Location:
    """A node of the location hierarchy (building, floor, room, desk...)."""

    id: int
    name: str = ""
    kind: str | None = None
    qualified_name: str = ""
    capacity: int | None = None
    facilities: list[Facility] | None = None
    locations: list["Location"] = field(default_factory=list)
    parent_id: int | None = None
    is_bookable: bool | None = None

    @property
    def effective_capacity(self) -> int | None:
        if self.capacity is not None:
            return self.capacity
        if self.kind == LocationKind.DESK:
            return 1
        return None

    @property
    def display_name(self) -> str:
        return self.qualified_name or self.name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Location":
        facilities = data.get("facilities")
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            kind=data.get("kind"),
            qualified_name=data.get("qualifiedName") or "",
            capacity=data.get("capacity"),
            facilities=(
                [Facility.from_dict(f) for f in facilities]
                if isinstance(facilities, list) else None
            ),
            locations=[cls.from_dict(c) for c in data.get("locations") or []],
            parent_id=data.get("parentId"),
            is_bookable=data.get("isBookable"),
        )


def iter_locations(locations: list[Location]) -> Iterator[Location]:
    """Walk a location tree depth-first, parents before children."""
    for location in locations:
        yield location
        yield from iter_locations(location.locations)


@dataclass
class LocationQuery:
    """Parameters for a location hierarchy fetch."""

    parent_id: int | None = None
    location_id: int | None = None
    kind: str | None = None
    include_children: bool = False
    include_facilities: bool = False
    is_bookable: bool | None = None


@dataclass
class LocationHierarchy:
    """Locations returned by the hierarchy provider."""

    locations: list[Location] = field(default_factory=list)
    total: int = 0
    hierarchy: dict[int, list[int]] = field(default_factory=dict)

    def flatten(self) -> list[Location]:
        return list(iter_locations(self.locations))

    @classmethod
    def from_locations(cls, locations: list[Location]) -> "LocationHierarchy":
        hierarchy = {
            loc.id: [child.id for child in loc.locations]
            for loc in iter_locations(locations)
            if loc.locations
        }
        return cls(locations=locations, total=len(locations), hierarchy=hierarchy)


def parse_api_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class TimeSlot:
    """A single time slot."""

    start: datetime
    end: datetime

    def __str__(self) -> str:
        day = self.start.strftime("%A, %B %d")
        start_time = self.start.strftime("%H:%M")
        end_time = self.end.strftime("%H:%M")
        return f"{day} {start_time}-{end_time}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeSlot":
        start = data.get("timeFrom") or data.get("from")
        end = data.get("timeTo") or data.get("to")
        return cls(start=parse_api_datetime(start), end=parse_api_datetime(end))


@dataclass
class AvailabilityRequest:
    location_id: int
    date_from: str
    date_to: str
    booking_category: int | None = None


@dataclass
class AvailabilityResponse:
    """Upstream availability answer. `available` is a slot list or a flag."""

    available: list[TimeSlot] | bool = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_available(self) -> bool:
        if isinstance(self.available, bool):
            return self.available
        return len(self.available) > 0

    @property
    def slots(self) -> list[TimeSlot]:
        return self.available if isinstance(self.available, list) else []

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AvailabilityResponse":
        available = data.get("available")
        if isinstance(available, list):
            slots = [TimeSlot.from_dict(s) for s in available if isinstance(s, dict)]
            return cls(available=slots, raw=data)
        return cls(available=bool(available), raw=data)


@dataclass
class LocationSearchRequest:
    """A ranked location search. Explicit fields win over the free-text query."""

    requirements: list[str] = field(default_factory=list)
    capacity: int | None = None
    location_kind: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    limit: int | None = None
    parent_location_id: int | None = None
    query: str | None = None


@dataclass
class FacilityInfo:
    has_screen: bool = False
    screen_size: int | None = None
    has_adjustable_desk: bool = False
    desk_mechanism: str | None = None
    has_video_conference: bool = False
    has_whiteboard: bool = False
    has_phone: bool = False
    has_air_conditioning: bool = False
    has_wifi: bool = False
    has_power_outlets: bool = False
    is_accessible: bool = False
    matched_facilities: list[str] = field(default_factory=list)

    @classmethod
    def from_profile(
        cls, profile: AggregatedFacilityProfile, matched: list[str] | None = None
    ) -> "FacilityInfo":
        return cls(
            has_screen=profile.has_screen,
            screen_size=profile.screen_size,
            has_adjustable_desk=profile.adjustable,
            desk_mechanism=profile.mechanism,
            has_video_conference=profile.has_video_conference,
            has_whiteboard=profile.has_whiteboard,
            has_phone=profile.has_phone,
            has_air_conditioning=profile.has_air_conditioning,
            has_wifi=profile.has_wifi,
            has_power_outlets=profile.has_power_outlets,
            is_accessible=profile.is_accessible,
            matched_facilities=list(matched or []),
        )


@dataclass
class AvailabilityInfo:
    is_available: bool
    available_slots: list[TimeSlot] = field(default_factory=list)


@dataclass
class LocationSearchResult:
    location: Location
    score: float
    match_details: list[str] = field(default_factory=list)
    facility_info: FacilityInfo | None = None
    availability: AvailabilityInfo | None = None


@dataclass
class SearchMetadata:
    search_time_ms: int = 0
    locations_searched: int = 0
    availability_checked: int = 0
    applied_filters: list[str] = field(default_factory=list)


@dataclass
class LocationSearchResponse:
    results: list[LocationSearchResult] = field(default_factory=list)
    total_matches: int = 0
    metadata: SearchMetadata = field(default_factory=SearchMetadata)
    suggestions: list[str] = field(default_factory=list)
