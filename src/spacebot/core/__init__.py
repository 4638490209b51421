"""Location resolution, facility matching and search."""

from .facilities import FacilityTextParser
from .locations import LocationResolver
from .search import SearchEngine

__all__ = ["FacilityTextParser", "LocationResolver", "SearchEngine"]
