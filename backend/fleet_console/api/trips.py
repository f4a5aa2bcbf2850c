"""Trip listing and the trip details modal."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fleet_console.api import sessions
from fleet_console.api.render import session_editor_view
from fleet_console.schemas.stop import Pagination
from fleet_console.schemas.trip import TripDetail, TripFilters
from fleet_console.schemas.views import EditorView

router = APIRouter(prefix="/api/sessions/{session_id}/trips", tags=["trips"])


class TripPage(BaseModel):
    trips: list[TripDetail]
    pagination: Pagination | None = None


@router.get("", response_model=TripPage)
async def list_trips(session_id: str, filters: TripFilters = Depends()):
    ui = sessions.lookup(session_id)
    trips, pagination = await ui.client.get_trips(filters)
    return TripPage(trips=trips, pagination=pagination)


@router.post("/{trip_id}/open", response_model=EditorView)
async def open_trip(session_id: str, trip_id: int):
    """Open the trip details modal in view mode."""
    ui = sessions.lookup(session_id)
    return session_editor_view(await ui.open_trip_by_id(trip_id))
