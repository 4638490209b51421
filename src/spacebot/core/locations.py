"""Resolve user supplied location references to hierarchy nodes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Union

from ..errors import NotFoundError, SpacebotError, UpstreamError
from ..models import Location, LocationKind, LocationQuery, iter_locations
from ..providers.base import LocationHierarchyProvider

logger = logging.getLogger(__name__)

# References at or above this value are location ids, below are room numbers
DIRECT_ID_THRESHOLD = 100000

ROOM_NUMBER_RE = re.compile(r"^(\d{3,4})$")
DESK_ID_RE = re.compile(r"^(\d{1,2})-([A-Z])$", re.IGNORECASE)
DESK_BANK_RE = re.compile(r"^(\d{1,2})$")
KIND_PREFIX_RE = re.compile(r"^(room|desk)\s+", re.IGNORECASE)
TRAILING_NUMBER_RE = re.compile(r"(\d+)\s*$")
STANDALONE_NUMBER_RE = re.compile(r"\b(\d+)\b")


# --- Search term classification ---------------------------------------------

@dataclass(frozen=True)
class RoomNumber:
    text: str
    number: int


@dataclass(frozen=True)
class DeskId:
    text: str
    bank: int
    letter: str


@dataclass(frozen=True)
class DeskBankNumber:
    text: str
    number: int


@dataclass(frozen=True)
class FreeText:
    text: str


SearchTerm = Union[RoomNumber, DeskId, DeskBankNumber, FreeText]


def classify_search_term(name: str) -> SearchTerm:
    """Classify a location name as a room number, desk id, desk bank or free text.

    A leading "room " or "desk " is dropped first, so "Room 701" is a room
    number and "desk 37-A" a desk id.
    """
    text = KIND_PREFIX_RE.sub("", name.strip()).strip()

    match = ROOM_NUMBER_RE.match(text)
    if match:
        return RoomNumber(text=text, number=int(match.group(1)))
    match = DESK_ID_RE.match(text)
    if match:
        return DeskId(text=text, bank=int(match.group(1)), letter=match.group(2).upper())
    match = DESK_BANK_RE.match(text)
    if match:
        return DeskBankNumber(text=text, number=int(match.group(1)))
    return FreeText(text=text)


def search_kind(term: SearchTerm, search_type: str = "any") -> str | None:
    """Pick the location kind filter for a name search."""
    if search_type == "room" or isinstance(term, RoomNumber):
        return LocationKind.ROOM.value
    if search_type == "desk" or isinstance(term, DeskId):
        return LocationKind.DESK.value
    if isinstance(term, DeskBankNumber):
        return LocationKind.DESK_BANK.value
    if search_type == "any":
        return f"{LocationKind.ROOM.value},{LocationKind.DESK.value}"
    return None


def _extract_number(text: str) -> int | None:
    match = TRAILING_NUMBER_RE.search(text) or STANDALONE_NUMBER_RE.search(text)
    return int(match.group(1)) if match else None


def find_location_in_hierarchy(term: str, locations: list[Location]) -> Location | None:
    """Pick the best match for term: exact name, then substring, then room number."""
    needle = term.strip().lower()
    if not needle:
        return None
    candidates = list(iter_locations(locations))

    for location in candidates:
        if location.name.lower() == needle:
            return location

    for location in candidates:
        if needle in location.name.lower():
            return location

    number = _extract_number(needle)
    if number is not None:
        for location in candidates:
            if number in (int(n) for n in re.findall(r"\d+", location.name)):
                return location

    return None


@dataclass
class NameSearchResult:
    """Outcome of a location name search."""

    term: SearchTerm
    kind: str | None
    exact: list[Location] = field(default_factory=list)
    partial: list[Location] = field(default_factory=list)

    @property
    def matches(self) -> list[Location]:
        return self.exact + self.partial


def match_locations(
    locations: list[Location], term: SearchTerm
) -> tuple[list[Location], list[Location]]:
    """Split locations into exact and partial name matches for term."""
    exact: list[Location] = []
    partial: list[Location] = []
    needle = term.text.lower()

    for location in iter_locations(locations):
        name = location.name.lower()
        if name == needle:
            exact.append(location)
        elif needle and needle in name:
            partial.append(location)
        elif isinstance(term, DeskId):
            desk = DESK_ID_RE.match(location.name)
            if desk and int(desk.group(1)) == term.bank and desk.group(2).upper() == term.letter:
                exact.append(location)

    return exact, partial


class LocationResolver:
    """Turns ids, room numbers and names into location ids.

    The preferred (home) location is searched first and passed in explicitly.
    """

    def __init__(
        self,
        provider: LocationHierarchyProvider,
        preferred_location_id: int | None = None,
    ):
        self.provider = provider
        self.preferred_location_id = preferred_location_id

    async def resolve_location_id(self, reference: int | float | str) -> int:
        """Resolve a reference to a location id.

        Numbers >= 100000 are looked up directly. Anything else, including
        numeric strings such as "123456", is treated as a search term.
        """
        if isinstance(reference, (int, float)) and not isinstance(reference, bool):
            if reference >= DIRECT_ID_THRESHOLD:
                return await self._lookup_direct(int(reference))
            term = str(int(reference)) if float(reference).is_integer() else str(reference)
        else:
            term = str(reference).strip()

        if not term:
            raise NotFoundError("Location reference is empty")

        try:
            location = await self._search_preferred_then_global(term)
        except UpstreamError as e:
            raise UpstreamError(f'Error resolving location "{term}": {e}', status=e.status) from e
        except SpacebotError:
            raise
        except Exception as e:
            raise UpstreamError(f'Error resolving location "{term}": {e}') from e

        if location is None:
            raise NotFoundError(f'Location "{term}" not found in organization hierarchy')
        logger.info("Resolved location %r to %s (%s)", term, location.id, location.name)
        return location.id

    async def _lookup_direct(self, location_id: int) -> int:
        try:
            location = await self.provider.get_location(location_id)
        except SpacebotError:
            raise
        except Exception as e:
            raise UpstreamError(f"Error looking up location ID {location_id}: {e}") from e
        return location.id

    async def _search_preferred_then_global(self, term: str) -> Location | None:
        if self.preferred_location_id is not None:
            scoped = await self.provider.get_location_hierarchy(LocationQuery(
                parent_id=self.preferred_location_id,
                include_children=True,
                include_facilities=False,
            ))
            found = find_location_in_hierarchy(term, scoped.locations)
            if found is not None:
                return found
            logger.debug("%r not under preferred location %s, searching globally",
                         term, self.preferred_location_id)

        everything = await self.provider.get_location_hierarchy(LocationQuery(
            include_children=True,
            include_facilities=False,
        ))
        return find_location_in_hierarchy(term, everything.locations)

    async def find_locations_by_name(self, name: str, search_type: str = "any") -> NameSearchResult:
        """Name search within the preferred location, narrowed by the term's shape."""
        term = classify_search_term(name)
        kind = search_kind(term, search_type)
        query = LocationQuery(
            location_id=self.preferred_location_id,
            kind=kind,
            include_children=False,
            include_facilities=False,
        )
        hierarchy = await self.provider.get_location_hierarchy(query)
        exact, partial = match_locations(hierarchy.locations, term)
        return NameSearchResult(term=term, kind=kind, exact=exact, partial=partial)
