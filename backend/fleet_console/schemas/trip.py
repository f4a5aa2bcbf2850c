from typing import Literal

from pydantic import BaseModel

from fleet_console.schemas.route import RouteWithStops
from fleet_console.schemas.stop import Stop, StopPayload

TripType = Literal["regular", "express", "limited"]


class TripStopTime(BaseModel):
    id: int | None = None
    stop_id: int
    approx_arrival_time: str = ""
    approx_departure_time: str = ""
    dwell_time_minutes: int = 0
    stop: Stop | None = None


class TripDetail(BaseModel):
    id: int
    route_id: int
    bus_id: int
    trip_type: TripType = "regular"
    scheduled_start_time: str
    scheduled_end_time: str
    is_active: bool = True
    route: RouteWithStops
    trip_stop_times: list[TripStopTime] = []


class TripStopTimeInput(BaseModel):
    stop_id: int
    approx_arrival_time: str = ""
    approx_departure_time: str = ""


class CreateTripRequest(BaseModel):
    route_id: int
    bus_id: int
    scheduled_start_time: str
    scheduled_end_time: str
    trip_type: TripType = "regular"
    stops: list[TripStopTimeInput]


class TripScalars(BaseModel):
    trip_type: TripType
    scheduled_start_time: str
    scheduled_end_time: str


class TripRouteStops(BaseModel):
    stops: list[StopPayload]


class UpdateTripRequest(BaseModel):
    trip: TripScalars
    route: TripRouteStops


class TripFilters(BaseModel):
    route_id: int | None = None
    is_active: bool | None = None
    limit: int | None = None
    page: int | None = None
    orderby: str | None = None
    order: Literal["asc", "desc"] | None = None
    all: bool = False

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.route_id:
            params["route_id"] = str(self.route_id)
        if self.is_active is not None:
            params["is_active"] = "true" if self.is_active else "false"
        if self.limit:
            params["limit"] = str(self.limit)
        if self.page:
            params["page"] = str(self.page)
        if self.orderby:
            params["orderby"] = self.orderby
        if self.order:
            params["order"] = self.order
        if self.all:
            params["all"] = "true"
        return params
