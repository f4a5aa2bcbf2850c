"""Tests for FleetClient against a mocked fleet API."""

import json

import httpx
import pytest

from fleet_console.core import fleet_client
from fleet_console.core.fleet_client import FleetApiError, FleetClient
from fleet_console.schemas.route import ProcessStopsRequest
from fleet_console.schemas.stop import StopPayload
from fleet_console.schemas.trip import TripFilters


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(fleet_client, "RETRY_BACKOFF", [0, 0, 0])


def make_client(handler) -> FleetClient:
    return FleetClient(base_url="http://fleet.test", token="secret", transport=httpx.MockTransport(handler))


ROUTE = {
    "id": 10,
    "total_distance_km": 2.4,
    "route_stops": [
        {"stop_id": 1, "sequence_order": 1, "stop": {"id": 1, "name": "A", "latitude": 1.0, "longitude": 2.0}},
        {
            "stop_id": 5, "sequence_order": 2, "travel_time_from_previous_stop_min": 4,
            "travel_distance_from_previous_stop": 1.2,
            "stop": {"id": 5, "name": "B", "latitude": 3.0, "longitude": 4.0},
        },
    ],
}


@pytest.mark.asyncio
async def test_search_stops_params_and_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={
            "success": True,
            "data": {
                "stops": [{"id": 1, "name": "Dinamo", "latitude": 56.848, "longitude": 60.599}],
                "pagination": {"total": 31, "totalPages": 3, "page": 1, "limit": 15},
            },
        })

    client = make_client(handler)
    page = await client.search_stops("Din", page=1, limit=15)
    await client.close()

    assert seen["url"].path == "/api/stops/search"
    assert seen["url"].params["q"] == "Din"
    assert seen["url"].params["limit"] == "15"
    assert seen["auth"] == "Bearer secret"
    assert page.stops[0].name == "Dinamo"
    assert page.pagination.total_pages == 3


@pytest.mark.asyncio
async def test_process_stops_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "success": True,
            "data": {
                "route": ROUTE,
                "stops": [{"stop_id": 1, "name": "A", "status": "reused"}, {"stop_id": 5, "name": "B", "status": "created"}],
            },
        })

    client = make_client(handler)
    result = await client.process_stops(ProcessStopsRequest(
        stops=[
            StopPayload(stop_id=1, dwell_time_minutes=0),
            StopPayload(name="B", latitude=3.0, longitude=4.0, travel_time_from_previous_stop_min=4,
                        travel_distance_from_previous_stop=1.2, dwell_time_minutes=1),
        ],
        bus_id=7,
    ))
    await client.close()

    assert seen["body"]["bus_id"] == 7
    assert "bus_ids" not in seen["body"]
    assert seen["body"]["stops"][0] == {
        "stop_id": 1, "travel_time_from_previous_stop_min": 0,
        "travel_distance_from_previous_stop": 0.0, "dwell_time_minutes": 0,
    }
    assert "stop_id" not in seen["body"]["stops"][1]
    assert result.route.id == 10
    assert [s.status for s in result.stops] == ["reused", "created"]


@pytest.mark.asyncio
async def test_error_envelope_becomes_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={
            "success": False,
            "message": "Validation failed",
            "errors": [{"message": "Stop 2 latitude is invalid"}],
        })

    client = make_client(handler)
    with pytest.raises(FleetApiError) as exc_info:
        await client.process_stops(ProcessStopsRequest(stops=[]))
    await client.close()

    err = exc_info.value
    assert err.status_code == 400
    assert err.message == "Validation failed"
    assert err.detail == "Stop 2 latitude is invalid"


@pytest.mark.asyncio
async def test_success_false_with_200():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Bus number already exists"})

    client = make_client(handler)
    with pytest.raises(FleetApiError, match="Bus number already exists"):
        await client.get_buses()
    await client.close()


@pytest.mark.asyncio
async def test_get_retries_server_errors():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"success": True, "data": ROUTE})

    client = make_client(handler)
    route = await client.get_route(10)
    await client.close()

    assert len(attempts) == 3
    assert [rs.stop_id for rs in route.ordered_stops()] == [1, 5]


@pytest.mark.asyncio
async def test_writes_are_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler)
    with pytest.raises(FleetApiError):
        await client.process_stops(ProcessStopsRequest(stops=[]))
    await client.close()
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_malformed_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": {"id": "not-a-number"}})

    client = make_client(handler)
    with pytest.raises(FleetApiError, match="Malformed response"):
        await client.get_route(10)
    await client.close()


@pytest.mark.asyncio
async def test_trips_with_pagination():
    trip = {
        "id": 20, "route_id": 10, "bus_id": 7, "trip_type": "regular",
        "scheduled_start_time": "08:00:00", "scheduled_end_time": "09:00:00",
        "route": ROUTE, "trip_stop_times": [],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["route_id"] == "10"
        return httpx.Response(200, json={
            "success": True,
            "data": {"trips": [trip], "pagination": {"total": 1, "totalPages": 1}},
        })

    client = make_client(handler)
    trips, pagination = await client.get_trips(TripFilters(route_id=10))
    await client.close()
    assert trips[0].id == 20
    assert pagination.total == 1
