"""Abstract bases for the booking API collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import AvailabilityRequest, AvailabilityResponse, Location, LocationHierarchy, LocationQuery


class LocationHierarchyProvider(ABC):
    """Source of location hierarchy nodes."""

    @abstractmethod
    async def get_location_hierarchy(self, query: LocationQuery) -> LocationHierarchy:
        """Fetch locations. Children are nested under `Location.locations`;
        facilities are only populated when `query.include_facilities` is set."""
        ...

    @abstractmethod
    async def get_location(self, location_id: int) -> Location:
        """Fetch a single location by id. Raises if it does not exist."""
        ...


class AvailabilityProvider(ABC):
    """Source of availability for a single location."""

    @abstractmethod
    async def check_availability(self, request: AvailabilityRequest) -> AvailabilityResponse:
        """Return free slots. "No slots" is an empty result, not an error."""
        ...
