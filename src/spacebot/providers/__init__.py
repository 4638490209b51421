"""Booking API collaborators."""

from .base import AvailabilityProvider, LocationHierarchyProvider
from .matrix import MatrixAPIClient

__all__ = [
    "AvailabilityProvider",
    "LocationHierarchyProvider",
    "MatrixAPIClient",
]
