"""Matrix Booking HTTP API client."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import urllib.error
import urllib.request
from typing import Any
from urllib.parse import urlencode

from ..config import MatrixConfig
from ..errors import NotFoundError, UpstreamError
from ..models import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingCategory,
    Location,
    LocationHierarchy,
    LocationQuery,
)
from ..retry import retry_async
from .base import AvailabilityProvider, LocationHierarchyProvider

logger = logging.getLogger(__name__)


def build_hierarchy_params(query: LocationQuery) -> list[tuple[str, str]]:
    """Translate a LocationQuery into Matrix `/location` query parameters."""
    params: list[tuple[str, str]] = []
    scope = query.location_id or query.parent_id

    if query.kind:
        # Comma separated kinds become repeated parameters ("ROOM,DESK")
        for kind in query.kind.split(","):
            params.append(("kind", kind.strip()))
        if scope:
            params.append(("l", str(scope)))
        if query.include_facilities:
            params.append(("include", "facilities"))
        return params

    params.append(("select", "higher"))
    params.append(("include", "locations"))
    params.append(("include", "nested"))
    if query.include_facilities:
        params.append(("include", "facilities"))
    if scope:
        params.append(("l", str(scope)))
    return params


def build_availability_params(request: AvailabilityRequest) -> list[tuple[str, str]]:
    category = request.booking_category or BookingCategory.DESK
    return [
        ("l", str(request.location_id)),
        ("f", request.date_from),
        ("t", request.date_to),
        ("bc", str(int(category))),
        ("include", "locations"),
        ("include", "facilities"),
        ("status", "available"),
    ]


class MatrixAPIClient(LocationHierarchyProvider, AvailabilityProvider):
    """Talks to the Matrix Booking REST API with HTTP Basic auth."""

    def __init__(self, config: MatrixConfig):
        self.config = config
        token = base64.b64encode(f"{config.username}:{config.password}".encode()).decode()
        self._auth_header = f"Basic {token}"

    async def get_location_hierarchy(self, query: LocationQuery) -> LocationHierarchy:
        data = await self._get("/location", build_hierarchy_params(query), label="matrix.location_hierarchy")
        items = data if isinstance(data, list) else [data] if isinstance(data, dict) else []
        locations = [Location.from_dict(item) for item in items if "id" in item]
        logger.debug("Fetched %d locations (query=%s)", len(locations), query)
        return LocationHierarchy.from_locations(locations)

    async def get_location(self, location_id: int) -> Location:
        try:
            data = await self._get(f"/location/{location_id}", [], label="matrix.location")
        except UpstreamError as e:
            if e.status == 404:
                raise NotFoundError(f"Location ID {location_id} not found") from e
            raise
        return Location.from_dict(data)

    async def check_availability(self, request: AvailabilityRequest) -> AvailabilityResponse:
        data = await self._get(
            "/availability", build_availability_params(request), label="matrix.availability"
        )
        return AvailabilityResponse.from_dict(data if isinstance(data, dict) else {})

    async def _get(self, path: str, params: list[tuple[str, str]], label: str) -> Any:
        url = f"{self.config.base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"

        def _call():
            req = urllib.request.Request(
                url,
                headers={
                    "Authorization": self._auth_header,
                    "Accept": "application/json",
                },
            )
            try:
                with urllib.request.urlopen(req, timeout=self.config.timeout_seconds) as resp:
                    status = resp.status
                    body = resp.read()
            except urllib.error.HTTPError as e:
                raise UpstreamError(
                    f"Matrix API returned {e.code} for {path}: {e.reason}", status=e.code
                ) from e
            except (urllib.error.URLError, TimeoutError) as e:
                raise UpstreamError(f"Matrix API request to {path} failed: {e}") from e
            if not body:
                return {}
            try:
                return json.loads(body)
            except ValueError as e:
                raise UpstreamError(f"Matrix API returned invalid JSON for {path}: {e}", status=status) from e

        return await retry_async(
            asyncio.to_thread, _call, max_retries=self.config.max_retries, label=label
        )
