from pydantic import BaseModel

from fleet_console.schemas.route import RouteWithStops
from fleet_console.schemas.trip import TripDetail


class Bus(BaseModel):
    id: int
    bus_number: str
    imei_number: str = ""
    name: str | None = None
    is_active: bool = True


class CreateBusRequest(BaseModel):
    bus_number: str
    imei_number: str
    name: str | None = None


class BusDetails(Bus):
    routes: list[RouteWithStops] = []
    trips: list[TripDetail] = []
