"""Turn engine state into response models."""

from dataclasses import asdict

from fleet_console.core.creation_flow import CreationResult, TripCreation
from fleet_console.core.edit_session import EditSession, NavigationIntent, SaveResult
from fleet_console.core.reconcile import StopChange, classify_sequence
from fleet_console.core.stop_search import StopSearch
from fleet_console.core.stop_sequence import StopSequenceEditor, ValidationIssue
from fleet_console.core.time_utils import format_time, route_display_name
from fleet_console.core.ui_session import UISession
from fleet_console.schemas.views import (
    EditorView,
    FlowView,
    IntentView,
    IssueView,
    ResultView,
    SearchView,
    SessionView,
    StopRow,
    TripCreationView,
)


def intent_view(intent: NavigationIntent | None) -> IntentView | None:
    if intent is None:
        return None
    return IntentView(source=intent.source, target=intent.target, target_id=intent.target_id)


def issue_views(issues: list[ValidationIssue]) -> list[IssueView]:
    return [IssueView(index=i.index, field=i.field, message=i.message) for i in issues]


def _rows(editor: StopSequenceEditor, changes: list[StopChange]) -> list[StopRow]:
    return [
        StopRow(
            position=position,
            sequence_order=order,
            change=changes[position].value,
            removable=not editor.is_anchor(position) and not editor.read_only,
            stop=stop,
            arrival_display=format_time(stop.approx_arrival_time),
            departure_display=format_time(stop.approx_departure_time),
        )
        for position, (order, stop) in zip(editor.positions(), editor.with_sequence_order())
    ]


def session_editor_view(session: EditSession) -> EditorView:
    return EditorView(
        scope=session.scope,
        state=session.state.value,
        dirty=session.dirty,
        can_undo=session.can_undo,
        can_save=session.can_save,
        read_only=session.editor.read_only,
        pending_intent=intent_view(session.pending_intent),
        form=session.form.model_dump(mode="json", exclude={"stops"}),
        stops=_rows(session.editor, session.classify()),
    )


def builder_editor_view(scope: str, editor: StopSequenceEditor, form) -> EditorView:
    """Route-creation builder: always editing, nothing to compare against."""
    return EditorView(
        scope=scope,
        state="editing",
        read_only=editor.read_only,
        form=form.model_dump(mode="json", exclude={"stops"}),
        stops=_rows(editor, classify_sequence(editor.stops)),
    )


def editor_view(ui: UISession, scope: str) -> EditorView | None:
    if scope == "route":
        creation = ui.route_creation
        if creation is None:
            return None
        return builder_editor_view(scope, creation.editor, creation.form)
    session = ui.edit_session(scope)
    return session_editor_view(session) if session else None


def search_view(search: StopSearch) -> SearchView:
    return SearchView(
        query=search.query,
        suggestions=search.suggestions,
        pagination=search.pagination,
        has_more=search.has_more,
        remaining=search.remaining,
        is_loading=search.is_loading,
        error=search.error,
    )


def save_view(result: SaveResult, editor: EditorView | None) -> ResultView:
    return ResultView(ok=result.ok, message=result.message, issues=issue_views(result.issues), editor=editor)


def creation_view(result: CreationResult) -> ResultView:
    return ResultView(ok=result.ok, message=result.message, issues=issue_views(result.issues))


def trip_creation_view(creation: TripCreation) -> TripCreationView:
    route_name = creation.context.linked_route_name
    if route_name is None and creation.route is not None:
        route_name = route_display_name(creation.route.route_stops)
    return TripCreationView(
        linked=creation.linked,
        bus_id=creation.bus_id,
        route_id=creation.route_id,
        route_name=route_name,
        trip_type=creation.trip_type,
        scheduled_start_time=creation.scheduled_start_time,
        scheduled_end_time=creation.scheduled_end_time,
        stop_times=[st.model_dump(mode="json") for st in creation.stop_times],
    )


def session_view(ui: UISession) -> SessionView:
    return SessionView(
        id=ui.id,
        modals=asdict(ui.modals),
        flow=FlowView(route=asdict(ui.flow.route), trip=asdict(ui.flow.trip)),
        selected_bus_id=ui.selected_bus_id,
        selected_trip_id=ui.selected_trip.id if ui.selected_trip else None,
        bus_editor=session_editor_view(ui.bus_editor) if ui.bus_editor else None,
        trip_editor=session_editor_view(ui.trip_editor) if ui.trip_editor else None,
    )
