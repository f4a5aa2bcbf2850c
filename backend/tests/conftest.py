import pytest

from fakes import STOP_A, STOP_B, STOP_C, FakeFleetClient, make_route, make_trip
from fleet_console.schemas.bus import Bus


@pytest.fixture
def fleet() -> FakeFleetClient:
    """Bus 7 runs trip 20 on route 10 (A -> B -> C)."""
    client = FakeFleetClient()
    route = make_route(10, [STOP_A, STOP_B, STOP_C])
    client.routes[route.id] = route
    client.buses[7] = Bus(id=7, bus_number="E-101", imei_number="356938035643809")
    client.trips[20] = make_trip(20, route, bus_id=7)
    return client
