"""Create bus, create route and create trip modals.

The route builder's stops are edited through the editor endpoints with
scope "route".
"""

from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from fleet_console.api import sessions
from fleet_console.api.render import builder_editor_view, creation_view, session_view, trip_creation_view
from fleet_console.core.creation_flow import BusCreation, RouteCreation, TripCreation
from fleet_console.core.ui_session import UISession
from fleet_console.schemas.trip import TripType
from fleet_console.schemas.views import EditorView, ResultView, SessionView, TripCreationView

router = APIRouter(prefix="/api/sessions/{session_id}/create", tags=["creation"])


class BusFields(BaseModel):
    bus_number: str | None = None
    imei_number: str | None = None
    name: str | None = None


class BusForm(BaseModel):
    bus_number: str
    imei_number: str
    name: str


class BusSubmit(BaseModel):
    continue_to_route: bool = True


class BusSelection(BaseModel):
    bus_ids: list[int]


class TripBus(BaseModel):
    bus_id: int | None


class TripRoute(BaseModel):
    route_id: int


class TripFields(BaseModel):
    trip_type: TripType | None = None
    scheduled_start_time: str | None = None
    scheduled_end_time: str | None = None


class StopTimeUpdate(BaseModel):
    field: Literal["approx_arrival_time", "approx_departure_time"]
    value: str


class OpenTrip(BaseModel):
    route_id: int | None = None


def _bus(ui: UISession) -> BusCreation:
    if ui.bus_creation is None:
        raise HTTPException(status_code=409, detail="Create bus is not open")
    return ui.bus_creation


def _route(ui: UISession) -> RouteCreation:
    if ui.route_creation is None:
        raise HTTPException(status_code=409, detail="Create route is not open")
    return ui.route_creation


def _trip(ui: UISession) -> TripCreation:
    if ui.trip_creation is None:
        raise HTTPException(status_code=409, detail="Create trip is not open")
    return ui.trip_creation


def _bus_form(creation: BusCreation) -> BusForm:
    return BusForm(bus_number=creation.bus_number, imei_number=creation.imei_number, name=creation.name)


def _route_view(creation: RouteCreation) -> EditorView:
    return builder_editor_view("route", creation.editor, creation.form)


# ----------------------------------------------------------------------
# Bus


@router.post("/bus", response_model=BusForm)
async def open_create_bus(session_id: str):
    ui = sessions.lookup(session_id)
    return _bus_form(ui.open_create_bus())


@router.patch("/bus", response_model=BusForm)
async def update_bus(session_id: str, body: BusFields):
    ui = sessions.lookup(session_id)
    creation = _bus(ui)
    for name, value in body.model_dump(exclude_unset=True).items():
        setattr(creation, name, value or "")
    return _bus_form(creation)


@router.post("/bus/submit", response_model=ResultView)
async def submit_bus(session_id: str, body: BusSubmit | None = None):
    """Create the bus; on success the route builder opens linked to it."""
    ui = sessions.lookup(session_id)
    _bus(ui)
    continue_to_route = body.continue_to_route if body else True
    return creation_view(await ui.submit_create_bus(continue_to_route=continue_to_route))


@router.post("/bus/close", response_model=SessionView)
async def close_bus(session_id: str):
    ui = sessions.lookup(session_id)
    ui.close_create_bus()
    return session_view(ui)


# ----------------------------------------------------------------------
# Route


@router.post("/route", response_model=EditorView)
async def open_create_route(session_id: str):
    ui = sessions.lookup(session_id)
    return _route_view(ui.open_create_route())


@router.get("/route", response_model=EditorView)
async def get_create_route(session_id: str):
    ui = sessions.lookup(session_id)
    return _route_view(_route(ui))


@router.put("/route/buses", response_model=EditorView)
async def select_route_buses(session_id: str, body: BusSelection):
    ui = sessions.lookup(session_id)
    creation = _route(ui)
    if not creation.select_buses(body.bus_ids):
        raise HTTPException(status_code=409, detail="The route is linked to the new bus")
    return _route_view(creation)


@router.post("/route/existing/{route_id}", response_model=EditorView)
async def use_existing_route(session_id: str, route_id: int):
    """Link buses to an existing route instead of building a new one."""
    ui = sessions.lookup(session_id)
    _route(ui)
    return _route_view(await ui.use_existing_route(route_id))


@router.delete("/route/existing", response_model=EditorView)
async def clear_existing_route(session_id: str):
    ui = sessions.lookup(session_id)
    creation = _route(ui)
    creation.clear_existing_route()
    return _route_view(creation)


@router.post("/route/submit", response_model=ResultView)
async def submit_route(session_id: str):
    ui = sessions.lookup(session_id)
    _route(ui)
    return creation_view(await ui.submit_create_route())


@router.post("/route/close", response_model=SessionView)
async def close_route(session_id: str):
    ui = sessions.lookup(session_id)
    ui.close_create_route()
    return session_view(ui)


# ----------------------------------------------------------------------
# Trip


@router.post("/trip", response_model=TripCreationView)
async def open_create_trip(session_id: str, body: OpenTrip | None = None):
    ui = sessions.lookup(session_id)
    route = None
    if body is not None and body.route_id is not None:
        route = await ui.client.get_route(body.route_id)
    return trip_creation_view(ui.open_create_trip(route))


@router.get("/trip", response_model=TripCreationView)
async def get_create_trip(session_id: str):
    ui = sessions.lookup(session_id)
    return trip_creation_view(_trip(ui))


@router.put("/trip/bus", response_model=TripCreationView)
async def select_trip_bus(session_id: str, body: TripBus):
    ui = sessions.lookup(session_id)
    creation = _trip(ui)
    if not creation.select_bus(body.bus_id):
        raise HTTPException(status_code=409, detail="The trip is linked to the new bus")
    return trip_creation_view(creation)


@router.put("/trip/route", response_model=TripCreationView)
async def select_trip_route(session_id: str, body: TripRoute):
    ui = sessions.lookup(session_id)
    creation = _trip(ui)
    if not await ui.select_trip_route(body.route_id):
        raise HTTPException(status_code=409, detail="Route could not be selected")
    return trip_creation_view(creation)


@router.patch("/trip", response_model=TripCreationView)
async def update_trip(session_id: str, body: TripFields):
    ui = sessions.lookup(session_id)
    creation = _trip(ui)
    for name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(creation, name, value)
    return trip_creation_view(creation)


@router.patch("/trip/stops/{index}", response_model=TripCreationView)
async def update_stop_time(session_id: str, index: int, body: StopTimeUpdate):
    ui = sessions.lookup(session_id)
    creation = _trip(ui)
    if not 0 <= index < len(creation.stop_times):
        raise HTTPException(status_code=404, detail="Stop not found")
    creation.update_stop_time(index, body.field, body.value)
    return trip_creation_view(creation)


@router.post("/trip/submit", response_model=ResultView)
async def submit_trip(session_id: str):
    ui = sessions.lookup(session_id)
    _trip(ui)
    return creation_view(await ui.submit_create_trip())


@router.post("/trip/close", response_model=SessionView)
async def close_trip(session_id: str):
    ui = sessions.lookup(session_id)
    ui.close_create_trip()
    return session_view(ui)
