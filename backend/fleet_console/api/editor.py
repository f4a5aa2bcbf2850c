"""Stop-sequence editor endpoints.

``scope`` is "bus" (route editor in the bus details), "trip" (trip editor)
or "route" (the route-creation builder, stop operations only).
"""

from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ValidationError

from fleet_console.api import sessions
from fleet_console.api.render import editor_view, intent_view, save_view, search_view
from fleet_console.core.edit_session import EditSession, NavigationIntent
from fleet_console.core.stop_search import select_suggestion
from fleet_console.core.stop_sequence import StopSequenceEditor
from fleet_console.core.ui_session import EDIT_SCOPES, STOP_SCOPES, UISession
from fleet_console.schemas.stop import StopSuggestion
from fleet_console.schemas.trip import TripType
from fleet_console.schemas.views import (
    EditorView,
    MutationView,
    NavigationView,
    ResultView,
    SearchView,
)

router = APIRouter(prefix="/api/sessions/{session_id}/editors/{scope}", tags=["editor"])

StopField = Literal[
    "name",
    "latitude",
    "longitude",
    "travel_time_from_previous_stop_min",
    "travel_distance_from_previous_stop",
    "dwell_time_minutes",
    "approx_arrival_time",
    "approx_departure_time",
]


class FieldUpdate(BaseModel):
    field: StopField
    value: Any


class FormUpdate(BaseModel):
    trip_type: TripType | None = None
    scheduled_start_time: str | None = None
    scheduled_end_time: str | None = None


class SearchRequest(BaseModel):
    query: str


def _stop_editor(ui: UISession, scope: str) -> StopSequenceEditor:
    if scope not in STOP_SCOPES:
        raise HTTPException(status_code=404, detail=f"Unknown editor: {scope}")
    editor = ui.stop_editor(scope)
    if editor is None:
        raise HTTPException(status_code=409, detail=f"No {scope} editor is open")
    return editor


def _edit_session(ui: UISession, scope: str) -> EditSession:
    if scope not in EDIT_SCOPES:
        raise HTTPException(status_code=404, detail=f"Unknown editor: {scope}")
    session = ui.edit_session(scope)
    if session is None:
        raise HTTPException(status_code=409, detail=f"No {scope} editor is open")
    return session


def _invalid(e: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
    )


def _mutation(ui: UISession, scope: str, applied: bool, error: str | None = None) -> MutationView:
    if applied:
        error = None
    return MutationView(applied=applied, error=error, editor=editor_view(ui, scope))


def _not_editable(editor: StopSequenceEditor) -> str:
    if editor.locked:
        return "Enter edit mode first"
    return "Stops of an existing route cannot be changed"


@router.get("", response_model=EditorView)
async def get_editor(session_id: str, scope: str):
    ui = sessions.lookup(session_id)
    _stop_editor(ui, scope)
    return editor_view(ui, scope)


@router.post("/edit", response_model=EditorView)
async def enter_edit(session_id: str, scope: str):
    """Switch from viewing to editing; takes the snapshot."""
    ui = sessions.lookup(session_id)
    _edit_session(ui, scope).enter_edit()
    return editor_view(ui, scope)


@router.patch("", response_model=MutationView)
async def update_form(session_id: str, scope: str, body: FormUpdate):
    ui = sessions.lookup(session_id)
    session = _edit_session(ui, scope)
    try:
        applied = session.update_form(**body.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise _invalid(e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _mutation(ui, scope, applied, "Enter edit mode first")


@router.patch("/stops/{index}", response_model=MutationView)
async def update_stop(session_id: str, scope: str, index: int, body: FieldUpdate):
    ui = sessions.lookup(session_id)
    editor = _stop_editor(ui, scope)
    try:
        applied = editor.update_field(index, body.field, body.value)
    except IndexError:
        raise HTTPException(status_code=404, detail="Stop not found")
    except ValidationError as e:
        raise _invalid(e)
    if applied and body.field == "name":
        # Typing a name starts a new lookup for this input
        ui.search_for(scope).search(str(body.value))
    return _mutation(ui, scope, applied, _not_editable(editor))


@router.post("/stops/{index}/insert-after", response_model=MutationView)
async def insert_stop(session_id: str, scope: str, index: int):
    ui = sessions.lookup(session_id)
    editor = _stop_editor(ui, scope)
    try:
        applied = editor.insert_after(index)
    except IndexError:
        raise HTTPException(status_code=404, detail="Stop not found")
    error = "No stop can follow the end stop" if not (editor.locked or editor.read_only) else _not_editable(editor)
    return _mutation(ui, scope, applied, error)


@router.delete("/stops/{index}", response_model=MutationView)
async def remove_stop(session_id: str, scope: str, index: int):
    """Remove an interior stop; removing the start or end stop is a no-op."""
    ui = sessions.lookup(session_id)
    editor = _stop_editor(ui, scope)
    try:
        applied = editor.remove_at(index)
    except IndexError:
        raise HTTPException(status_code=404, detail="Stop not found")
    error = "Start and end stops cannot be removed" if not (editor.locked or editor.read_only) else _not_editable(editor)
    return _mutation(ui, scope, applied, error)


@router.post("/stops/{index}/search", response_model=SearchView)
async def search_stops(session_id: str, scope: str, index: int, body: SearchRequest):
    ui = sessions.lookup(session_id)
    _stop_editor(ui, scope)
    search = ui.search_for(scope)
    search.search(body.query)
    await search.flush()
    return search_view(search)


@router.post("/stops/{index}/search/more", response_model=SearchView)
async def load_more_stops(session_id: str, scope: str, index: int):
    ui = sessions.lookup(session_id)
    _stop_editor(ui, scope)
    search = ui.search_for(scope)
    await search.load_more()
    return search_view(search)


@router.post("/stops/{index}/select", response_model=MutationView)
async def select_stop(session_id: str, scope: str, index: int, suggestion: StopSuggestion):
    """Resolve a stop slot to a search suggestion."""
    ui = sessions.lookup(session_id)
    editor = _stop_editor(ui, scope)
    try:
        result = select_suggestion(editor, index, suggestion, search=ui.search_for(scope))
    except IndexError:
        raise HTTPException(status_code=404, detail="Stop not found")
    return _mutation(ui, scope, result.accepted, result.error)


@router.post("/undo", response_model=MutationView)
async def undo(session_id: str, scope: str):
    ui = sessions.lookup(session_id)
    applied = _edit_session(ui, scope).undo()
    return _mutation(ui, scope, applied, "Enter edit mode first")


@router.post("/save", response_model=ResultView)
async def save(session_id: str, scope: str):
    ui = sessions.lookup(session_id)
    _edit_session(ui, scope)
    if scope == "bus":
        result = await ui.save_bus_route()
    else:
        result = await ui.save_trip()
    return save_view(result, editor_view(ui, scope))


@router.post("/close", response_model=NavigationView)
async def close(session_id: str, scope: str):
    """Close the modal that owns this editor (guarded by unsaved changes)."""
    ui = sessions.lookup(session_id)
    session = _edit_session(ui, scope)
    decision = await ui.navigate(NavigationIntent(scope, "close"))
    return NavigationView(decision=decision.value, intent=intent_view(session.pending_intent))


@router.post("/cancel", response_model=NavigationView)
async def cancel(session_id: str, scope: str):
    """Back to viewing (guarded by unsaved changes)."""
    ui = sessions.lookup(session_id)
    session = _edit_session(ui, scope)
    decision = session.cancel()
    return NavigationView(decision=decision.value, intent=intent_view(session.pending_intent))


@router.post("/confirm-discard", response_model=NavigationView)
async def confirm_discard(session_id: str, scope: str):
    ui = sessions.lookup(session_id)
    _edit_session(ui, scope)
    intent = await ui.confirm_discard(scope)
    if intent is None:
        raise HTTPException(status_code=409, detail="Nothing to confirm")
    return NavigationView(decision="proceed", intent=intent_view(intent))


@router.post("/keep-editing", response_model=EditorView)
async def keep_editing(session_id: str, scope: str):
    ui = sessions.lookup(session_id)
    _edit_session(ui, scope)
    ui.keep_editing(scope)
    return editor_view(ui, scope)
