"""Tests for the Matrix Booking API client."""

from __future__ import annotations

import base64
import json
import urllib.error
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qsl, urlparse

import pytest

from spacebot.config import MatrixConfig
from spacebot.errors import NotFoundError, UpstreamError
from spacebot.models import AvailabilityRequest, LocationQuery
from spacebot.providers.matrix import (
    MatrixAPIClient,
    build_availability_params,
    build_hierarchy_params,
)


def fake_response(payload) -> MagicMock:
    mock_resp = MagicMock()
    mock_resp.read.return_value = json.dumps(payload).encode()
    mock_resp.__enter__ = MagicMock(return_value=mock_resp)
    mock_resp.__exit__ = MagicMock(return_value=False)
    return mock_resp


@pytest.fixture
def client():
    return MatrixAPIClient(MatrixConfig(
        username="alice@example.com",
        password="s3cret",
        base_url="https://matrix.example.com/api/v1",
        max_retries=0,
    ))


# ── query parameters ─────────────────────────────────────


def test_hierarchy_params_with_kind():
    params = build_hierarchy_params(LocationQuery(location_id=100001, kind="ROOM,DESK"))
    assert params == [("kind", "ROOM"), ("kind", "DESK"), ("l", "100001")]


def test_hierarchy_params_tree():
    params = build_hierarchy_params(LocationQuery(
        parent_id=100001, include_children=True, include_facilities=True,
    ))
    assert params == [
        ("select", "higher"),
        ("include", "locations"),
        ("include", "nested"),
        ("include", "facilities"),
        ("l", "100001"),
    ]


def test_hierarchy_params_global_without_facilities():
    params = build_hierarchy_params(LocationQuery(include_children=True))
    assert ("l", "100001") not in params
    assert ("include", "facilities") not in params


def test_availability_params():
    params = build_availability_params(AvailabilityRequest(
        location_id=100003,
        date_from="2025-03-10T09:00:00",
        date_to="2025-03-10T10:00:00",
        booking_category=9000002,
    ))
    assert ("l", "100003") in params
    assert ("f", "2025-03-10T09:00:00") in params
    assert ("t", "2025-03-10T10:00:00") in params
    assert ("bc", "9000002") in params
    assert ("status", "available") in params


def test_availability_params_default_to_desk_category():
    params = build_availability_params(AvailabilityRequest(
        location_id=1, date_from="a", date_to="b",
    ))
    assert ("bc", "9000001") in params


# ── HTTP ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_location_hierarchy_sends_basic_auth(client):
    payload = [{
        "id": 100001,
        "name": "HQ",
        "kind": "BUILDING",
        "locations": [
            {"id": 100003, "name": "Room 701", "kind": "ROOM", "capacity": 8,
             "qualifiedName": "HQ > Floor 7 > Room 701", "isBookable": True,
             "facilities": [{"name": "Whiteboard", "category": "furniture"}]},
        ],
    }]

    with patch("urllib.request.urlopen", return_value=fake_response(payload)) as mock_urlopen:
        hierarchy = await client.get_location_hierarchy(LocationQuery(
            parent_id=100001, include_children=True, include_facilities=True,
        ))

    mock_urlopen.assert_called_once()
    req = mock_urlopen.call_args[0][0]
    url = urlparse(req.full_url)
    assert url.path == "/api/v1/location"
    assert ("l", "100001") in parse_qsl(url.query)

    token = base64.b64encode(b"alice@example.com:s3cret").decode()
    assert req.get_header("Authorization") == f"Basic {token}"

    assert hierarchy.total == 1
    assert hierarchy.hierarchy == {100001: [100003]}
    room = hierarchy.flatten()[1]
    assert room.qualified_name == "HQ > Floor 7 > Room 701"
    assert room.capacity == 8
    assert room.is_bookable is True
    assert room.facilities[0].id == "whiteboard"


@pytest.mark.asyncio
async def test_get_location_not_found(client):
    error = urllib.error.HTTPError("https://x", 404, "Not Found", {}, None)
    with patch("urllib.request.urlopen", side_effect=error):
        with pytest.raises(NotFoundError, match="Location ID 999999 not found"):
            await client.get_location(999999)


@pytest.mark.asyncio
async def test_server_error_becomes_upstream_error(client):
    error = urllib.error.HTTPError("https://x", 503, "Service Unavailable", {}, None)
    with patch("urllib.request.urlopen", side_effect=error):
        with pytest.raises(UpstreamError) as exc_info:
            await client.get_location(100003)
    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_network_error_becomes_upstream_error(client):
    with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
        with pytest.raises(UpstreamError) as exc_info:
            await client.get_location(100003)
    assert exc_info.value.status is None


@pytest.mark.asyncio
async def test_check_availability_parses_slots(client):
    payload = {"available": [
        {"timeFrom": "2025-03-10T09:00:00.000", "timeTo": "2025-03-10T10:00:00.000"},
    ]}
    with patch("urllib.request.urlopen", return_value=fake_response(payload)):
        response = await client.check_availability(AvailabilityRequest(
            location_id=100003,
            date_from="2025-03-10T09:00:00",
            date_to="2025-03-10T10:00:00",
            booking_category=9000002,
        ))

    assert response.is_available is True
    assert response.slots[0].start.hour == 9
    assert response.slots[0].end.hour == 10


@pytest.mark.asyncio
async def test_check_availability_flag(client):
    with patch("urllib.request.urlopen", return_value=fake_response({"available": False})):
        response = await client.check_availability(AvailabilityRequest(
            location_id=100003, date_from="a", date_to="b",
        ))
    assert response.is_available is False
    assert response.slots == []


@pytest.mark.asyncio
async def test_malformed_json_becomes_upstream_error(client):
    mock_resp = fake_response({})
    mock_resp.read.return_value = b"<html>gateway</html>"
    mock_resp.status = 200
    with patch("urllib.request.urlopen", return_value=mock_resp) as mock_urlopen:
        with pytest.raises(UpstreamError, match="invalid JSON for /location/100003") as exc_info:
            await client.get_location(100003)
    assert exc_info.value.status == 200
    mock_urlopen.assert_called_once()
