"""Editable forms materialized from persisted routes and trips."""

from pydantic import BaseModel

from fleet_console.schemas.route import RouteWithStops
from fleet_console.schemas.stop import EditableStop
from fleet_console.schemas.trip import TripDetail, TripType


def _blank_stops() -> list[EditableStop]:
    return [EditableStop(), EditableStop()]


class RouteEditForm(BaseModel):
    route_id: int | None = None
    bus_id: int | None = None
    bus_ids: list[int] = []
    stops: list[EditableStop] = []

    @classmethod
    def blank(cls, bus_id: int | None = None) -> "RouteEditForm":
        return cls(bus_id=bus_id, stops=_blank_stops())

    @classmethod
    def from_route(cls, route: RouteWithStops, bus_id: int | None = None) -> "RouteEditForm":
        stops = []
        for i, rs in enumerate(route.ordered_stops()):
            stops.append(EditableStop(
                id=rs.stop_id,
                name=rs.stop.name,
                latitude=rs.stop.latitude,
                longitude=rs.stop.longitude,
                travel_time_from_previous_stop_min=rs.travel_time_from_previous_stop_min if i > 0 else 0,
                travel_distance_from_previous_stop=rs.travel_distance_from_previous_stop if i > 0 else 0.0,
                dwell_time_minutes=rs.dwell_time_minutes,
            ))
        return cls(route_id=route.id, bus_id=bus_id, stops=stops)


class TripEditForm(BaseModel):
    trip_id: int | None = None
    route_id: int | None = None
    bus_id: int | None = None
    trip_type: TripType = "regular"
    scheduled_start_time: str = ""
    scheduled_end_time: str = ""
    stops: list[EditableStop] = []

    @classmethod
    def from_trip(cls, trip: TripDetail) -> "TripEditForm":
        """Join trip stop times with the route's stops to get travel metrics.

        Stop times follow route sequence order; any stop time whose stop is
        not on the route keeps its position after the known ones.
        """
        route_stops = {rs.stop_id: rs for rs in trip.route.route_stops}
        order = {rs.stop_id: rs.sequence_order for rs in trip.route.route_stops}
        stop_times = sorted(
            trip.trip_stop_times,
            key=lambda st: order.get(st.stop_id, len(order) + 1),
        )

        stops = []
        for i, st in enumerate(stop_times):
            rs = route_stops.get(st.stop_id)
            stop = st.stop or (rs.stop if rs else None)
            stops.append(EditableStop(
                id=st.stop_id,
                name=stop.name if stop else "",
                latitude=stop.latitude if stop else 0.0,
                longitude=stop.longitude if stop else 0.0,
                travel_time_from_previous_stop_min=rs.travel_time_from_previous_stop_min if rs and i > 0 else 0,
                travel_distance_from_previous_stop=rs.travel_distance_from_previous_stop if rs and i > 0 else 0.0,
                dwell_time_minutes=st.dwell_time_minutes,
                approx_arrival_time=st.approx_arrival_time,
                approx_departure_time=st.approx_departure_time,
            ))

        return cls(
            trip_id=trip.id,
            route_id=trip.route_id,
            bus_id=trip.bus_id,
            trip_type=trip.trip_type,
            scheduled_start_time=trip.scheduled_start_time,
            scheduled_end_time=trip.scheduled_end_time,
            stops=stops,
        )
