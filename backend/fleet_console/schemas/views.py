from typing import Any

from pydantic import BaseModel

from fleet_console.schemas.stop import EditableStop, Pagination, StopSuggestion


class IssueView(BaseModel):
    index: int | None = None
    field: str | None = None
    message: str


class IntentView(BaseModel):
    source: str
    target: str
    target_id: int | None = None


class StopRow(BaseModel):
    position: int
    sequence_order: int
    change: str
    removable: bool
    stop: EditableStop
    arrival_display: str = "N/A"  # 12h, e.g. "8:06 AM"
    departure_display: str = "N/A"


class EditorView(BaseModel):
    scope: str
    state: str
    dirty: bool = False
    can_undo: bool = False
    can_save: bool = False
    read_only: bool = False
    pending_intent: IntentView | None = None
    form: dict[str, Any] = {}
    stops: list[StopRow] = []


class SearchView(BaseModel):
    query: str
    suggestions: list[StopSuggestion] = []
    pagination: Pagination | None = None
    has_more: bool = False
    remaining: int = 0
    is_loading: bool = False
    error: str | None = None


class MutationView(BaseModel):
    applied: bool
    error: str | None = None
    editor: EditorView


class ResultView(BaseModel):
    ok: bool
    message: str | None = None
    issues: list[IssueView] = []
    editor: EditorView | None = None


class NavigationView(BaseModel):
    decision: str
    intent: IntentView | None = None


class FlowView(BaseModel):
    route: dict[str, Any]
    trip: dict[str, Any]


class SessionView(BaseModel):
    id: str
    modals: dict[str, bool]
    flow: FlowView
    selected_bus_id: int | None = None
    selected_trip_id: int | None = None
    bus_editor: EditorView | None = None
    trip_editor: EditorView | None = None


class TripCreationView(BaseModel):
    linked: bool
    bus_id: int | None = None
    route_id: int | None = None
    route_name: str | None = None
    trip_type: str
    scheduled_start_time: str
    scheduled_end_time: str
    stop_times: list[dict[str, Any]] = []
