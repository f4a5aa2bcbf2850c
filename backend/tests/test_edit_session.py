"""Tests for the view/edit state machine (snapshot, undo, close guard, save)."""

import pytest

from fleet_console.core.edit_session import CloseDecision, EditSession, NavigationIntent, SessionState
from fleet_console.core.fleet_client import FleetApiError
from fleet_console.core.reconcile import StopChange
from fleet_console.schemas.forms import RouteEditForm, TripEditForm

from fakes import STOP_A, STOP_B, STOP_C, make_route, make_trip


def make_session() -> EditSession[RouteEditForm]:
    return EditSession("bus", RouteEditForm.from_route(make_route(10, [STOP_A, STOP_B, STOP_C]), bus_id=7))


def test_starts_viewing_and_locked():
    session = make_session()
    assert session.state is SessionState.VIEWING
    assert not session.editor.update_field(1, "dwell_time_minutes", 5)
    assert not session.dirty


def test_edit_then_dirty():
    session = make_session()
    session.enter_edit()
    assert session.editing and not session.dirty
    session.editor.update_field(1, "dwell_time_minutes", 5)
    assert session.dirty
    assert session.can_save and session.can_undo


def test_editing_back_to_original_value_is_clean():
    session = make_session()
    session.enter_edit()
    session.editor.update_field(1, "dwell_time_minutes", 5)
    session.editor.update_field(1, "dwell_time_minutes", 1)
    assert not session.dirty


def test_undo_restores_and_is_idempotent():
    session = make_session()
    session.enter_edit()
    session.editor.insert_after(0)
    session.editor.update_field(1, "name", "Novaya")
    assert session.dirty

    assert session.undo()
    assert not session.dirty
    assert [s.id for s in session.form.stops] == [1, 2, 3]
    first = session.form.model_dump()
    assert session.undo()
    assert session.form.model_dump() == first
    assert session.editing


def test_undo_keeps_editor_bound_to_form():
    session = make_session()
    session.enter_edit()
    session.editor.remove_at(1)
    session.undo()
    session.editor.update_field(1, "dwell_time_minutes", 3)
    assert session.form.stops[1].dwell_time_minutes == 3
    assert session.dirty


def test_modified_flag_persists_until_save():
    session = make_session()
    session.enter_edit()
    session.editor.update_field(1, "name", "Kuybysheva St")
    session.editor.update_field(1, "name", "Kuybysheva")
    assert session.classify()[1] is StopChange.MODIFIED


def test_clean_close_proceeds_without_prompt():
    session = make_session()
    session.enter_edit()
    assert session.request_close(NavigationIntent("bus", "close")) is CloseDecision.PROCEED
    assert session.state is SessionState.VIEWING
    assert session.pending_intent is None


def test_dirty_close_asks_then_discard_restores():
    session = make_session()
    session.enter_edit()
    session.editor.update_field(1, "dwell_time_minutes", 9)

    intent = NavigationIntent("bus", "close")
    assert session.request_close(intent) is CloseDecision.CONFIRM
    assert session.pending_intent == intent
    assert session.editing

    assert session.confirm_discard() == intent
    assert session.form.stops[1].dwell_time_minutes == 1
    assert session.state is SessionState.VIEWING
    assert not session.dirty


def test_keep_editing_drops_intent():
    session = make_session()
    session.enter_edit()
    session.editor.update_field(1, "dwell_time_minutes", 9)
    session.request_close(NavigationIntent("bus", "trip", 20))
    session.keep_editing()
    assert session.pending_intent is None
    assert session.dirty and session.editing
    assert session.confirm_discard() is None


def test_cancel_when_clean():
    session = make_session()
    session.enter_edit()
    assert session.cancel() is CloseDecision.PROCEED
    assert not session.editing


def test_update_form_scalars():
    session = EditSession("trip", TripEditForm.from_trip(make_trip(20, make_route(10, [STOP_A, STOP_B]))), trip=True)
    assert not session.update_form(trip_type="express")
    session.enter_edit()
    assert session.update_form(trip_type="express")
    assert session.form.trip_type == "express"
    assert session.dirty
    with pytest.raises(ValueError):
        session.update_form(stops=[])


def test_update_form_rejects_fields_the_form_lacks():
    session = make_session()
    session.enter_edit()
    with pytest.raises(ValueError, match="trip_type"):
        session.update_form(trip_type="express")
    assert not hasattr(session.form, "trip_type")
    assert not session.dirty


@pytest.mark.asyncio
async def test_save_clean_is_refused():
    session = make_session()
    session.enter_edit()

    async def submit(form, original):
        raise AssertionError("should not submit")

    result = await session.save(submit)
    assert not result.ok
    assert result.message == "No changes to save"


@pytest.mark.asyncio
async def test_save_validation_failure_keeps_state():
    session = make_session()
    session.enter_edit()
    session.editor.insert_after(0)

    async def submit(form, original):
        raise AssertionError("should not submit")

    result = await session.save(submit)
    assert not result.ok
    assert result.message == "Stop 2 name is required"
    assert session.editing and session.dirty


@pytest.mark.asyncio
async def test_save_api_error_keeps_state():
    session = make_session()
    session.enter_edit()
    session.editor.update_field(1, "dwell_time_minutes", 4)

    async def submit(form, original):
        raise FleetApiError("Validation failed", ["Stop name too long"], 422)

    result = await session.save(submit)
    assert not result.ok
    assert result.message == "Stop name too long"
    assert session.editing and session.dirty


@pytest.mark.asyncio
async def test_save_success_refreshes_snapshot():
    session = make_session()
    session.enter_edit()
    session.editor.update_field(1, "latitude", 56.8305)
    seen = {}

    async def submit(form, original):
        seen["original"] = original
        return None

    result = await session.save(submit)
    assert result.ok
    assert seen["original"].stops[1].latitude == 56.83
    assert session.state is SessionState.VIEWING
    assert not session.dirty

    session.enter_edit()
    assert session.form.stops[1].latitude == 56.8305
    assert session.classify()[1] is StopChange.UNCHANGED
