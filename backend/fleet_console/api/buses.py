"""Bus details and the bus-scoped route editor."""

from fastapi import APIRouter, HTTPException

from fleet_console.api import sessions
from fleet_console.api.render import intent_view, session_editor_view
from fleet_console.core.edit_session import NavigationIntent
from fleet_console.schemas.bus import Bus, BusDetails
from fleet_console.schemas.route import RouteSummary
from fleet_console.schemas.views import EditorView, NavigationView

router = APIRouter(prefix="/api/sessions/{session_id}/buses", tags=["buses"])


@router.get("", response_model=list[Bus])
async def list_buses(session_id: str):
    ui = sessions.lookup(session_id)
    return await ui.client.get_buses()


@router.get("/{bus_id}/routes", response_model=list[RouteSummary])
async def list_bus_routes(session_id: str, bus_id: int):
    """Routes assigned to a bus, for the route picker of trip creation."""
    ui = sessions.lookup(session_id)
    return await ui.client.get_routes_by_bus(bus_id)


@router.post("/{bus_id}/open", response_model=BusDetails)
async def open_bus(session_id: str, bus_id: int):
    """Open the bus details modal."""
    ui = sessions.lookup(session_id)
    return await ui.open_bus_details(bus_id)


@router.post("/routes/{route_id}/edit", response_model=EditorView)
async def edit_route(session_id: str, route_id: int):
    """Start editing one of the selected bus's routes."""
    ui = sessions.lookup(session_id)
    try:
        session = ui.edit_bus_route(route_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return session_editor_view(session)


@router.post("/trips/{trip_id}/open", response_model=NavigationView)
async def open_trip(session_id: str, trip_id: int):
    """Jump from the bus details to one of its trips (guarded by unsaved changes)."""
    ui = sessions.lookup(session_id)
    intent = NavigationIntent("bus", "trip", trip_id)
    decision = await ui.navigate(intent)
    return NavigationView(decision=decision.value, intent=intent_view(intent))


@router.post("/close", response_model=NavigationView)
async def close_bus(session_id: str):
    ui = sessions.lookup(session_id)
    intent = NavigationIntent("bus", "close")
    decision = await ui.navigate(intent)
    return NavigationView(decision=decision.value, intent=intent_view(intent))
