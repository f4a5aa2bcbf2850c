from typing import Literal

from pydantic import BaseModel

from fleet_console.schemas.stop import Stop, StopPayload


class RouteStop(BaseModel):
    stop_id: int
    sequence_order: int
    travel_time_from_previous_stop_min: int = 0
    travel_distance_from_previous_stop: float = 0.0
    dwell_time_minutes: int = 0
    stop: Stop


class RouteWithStops(BaseModel):
    id: int
    total_distance_km: float | None = None
    route_stops: list[RouteStop] = []

    def ordered_stops(self) -> list[RouteStop]:
        return sorted(self.route_stops, key=lambda rs: rs.sequence_order)


class RouteSummary(BaseModel):
    id: int
    first_stop: Stop
    last_stop: Stop
    total_distance_km: float | None = None


class ProcessStopsRequest(BaseModel):
    stops: list[StopPayload]
    bus_id: int | None = None
    bus_ids: list[int] | None = None


class ProcessedStop(BaseModel):
    stop_id: int
    name: str = ""
    status: Literal["created", "reused"] = "created"


class BusLinking(BaseModel):
    linked_bus_ids: list[int] = []
    already_linked_bus_ids: list[int] = []


class ProcessStopsResult(BaseModel):
    route: RouteWithStops
    stops: list[ProcessedStop] = []
    bus_linking: BusLinking | None = None
