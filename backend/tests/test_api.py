"""Tests for the HTTP surface (sessions, editors, creation)."""

import pytest
from fastapi.testclient import TestClient

from fleet_console.api import sessions
from fleet_console.config import settings
from fleet_console.core.ui_session import SessionRegistry
from fleet_console.main import app

from fakes import STOP_D, search_page, suggestion


@pytest.fixture
def api(fleet, monkeypatch):
    monkeypatch.setattr(settings, "search_debounce_ms", 0)
    with TestClient(app) as client:
        sessions.registry = SessionRegistry(fleet)
        yield client


def new_session(api) -> str:
    resp = api.post("/api/sessions")
    assert resp.status_code == 201
    return resp.json()["id"]


def test_health(api):
    resp = api.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_session_lifecycle(api):
    sid = new_session(api)
    body = api.get(f"/api/sessions/{sid}").json()
    assert body["modals"]["bus_details"] is False
    assert body["flow"]["route"]["from_bus_creation"] is False

    assert api.delete(f"/api/sessions/{sid}").status_code == 204
    assert api.get(f"/api/sessions/{sid}").status_code == 404


def test_editor_errors(api):
    sid = new_session(api)
    assert api.get(f"/api/sessions/{sid}/editors/depot").status_code == 404
    assert api.get(f"/api/sessions/{sid}/editors/bus").status_code == 409
    assert api.post(f"/api/sessions/{sid}/editors/route/undo").status_code == 404


def test_bus_route_edit_discard(api):
    sid = new_session(api)
    base = f"/api/sessions/{sid}"
    assert api.post(f"{base}/buses/7/open").json()["bus_number"] == "E-101"

    editor = api.post(f"{base}/buses/routes/10/edit").json()
    assert editor["state"] == "editing"
    assert [row["stop"]["id"] for row in editor["stops"]] == [1, 2, 3]
    assert [row["removable"] for row in editor["stops"]] == [False, True, False]

    resp = api.patch(f"{base}/editors/bus/stops/1", json={"field": "dwell_time_minutes", "value": 4})
    assert resp.json()["applied"] is True
    assert resp.json()["editor"]["dirty"] is True

    nav = api.post(f"{base}/buses/close").json()
    assert nav["decision"] == "confirm"

    nav = api.post(f"{base}/editors/bus/confirm-discard").json()
    assert nav["decision"] == "proceed"
    assert nav["intent"]["target"] == "close"
    assert api.get(f"{base}").json()["modals"]["bus_details"] is False


def test_search_select_and_save(api, fleet):
    fleet.search_pages[("Ural", 1)] = search_page([STOP_D])
    sid = new_session(api)
    base = f"/api/sessions/{sid}"
    api.post(f"{base}/buses/7/open")
    api.post(f"{base}/buses/routes/10/edit")

    assert api.post(f"{base}/editors/bus/stops/1/insert-after").json()["applied"] is True
    found = api.post(f"{base}/editors/bus/stops/2/search", json={"query": "Ural"}).json()
    assert [s["id"] for s in found["suggestions"]] == [4]

    resp = api.post(f"{base}/editors/bus/stops/2/select", json=found["suggestions"][0]).json()
    assert resp["applied"] is True
    assert resp["editor"]["stops"][2]["change"] == "unchanged"

    api.patch(f"{base}/editors/bus/stops/2", json={"field": "travel_time_from_previous_stop_min", "value": 3})
    api.patch(f"{base}/editors/bus/stops/2", json={"field": "travel_distance_from_previous_stop", "value": 0.7})

    result = api.post(f"{base}/editors/bus/save").json()
    assert result["ok"] is True, result
    assert result["editor"]["state"] == "viewing"
    assert [s.stop_id for s in fleet.calls_to("process_stops")[0].stops] == [1, 2, 4, 3]


def test_duplicate_selection_rejected(api):
    sid = new_session(api)
    base = f"/api/sessions/{sid}"
    api.post(f"{base}/buses/7/open")
    api.post(f"{base}/buses/routes/10/edit")

    resp = api.post(f"{base}/editors/bus/stops/1/select", json=suggestion(STOP_D).model_dump()).json()
    assert resp["applied"] is True
    dup = api.post(f"{base}/editors/bus/stops/2/select", json=suggestion(STOP_D).model_dump()).json()
    assert dup["applied"] is False
    assert dup["error"] == f'"{STOP_D.name}" is already in this route'


def test_anchor_removal_and_bad_values(api):
    sid = new_session(api)
    base = f"/api/sessions/{sid}"
    api.post(f"{base}/buses/7/open")
    api.post(f"{base}/buses/routes/10/edit")

    resp = api.delete(f"{base}/editors/bus/stops/0").json()
    assert resp["applied"] is False
    assert resp["error"] == "Start and end stops cannot be removed"
    assert api.delete(f"{base}/editors/bus/stops/9").status_code == 404
    assert api.patch(f"{base}/editors/bus/stops/1", json={"field": "latitude", "value": "north"}).status_code == 422
    assert api.patch(f"{base}/editors/bus/stops/1", json={"field": "id", "value": 5}).status_code == 422


def test_trip_view_mode_is_locked(api):
    sid = new_session(api)
    base = f"/api/sessions/{sid}"
    editor = api.post(f"{base}/trips/20/open").json()
    assert editor["state"] == "viewing"
    assert editor["form"]["scheduled_start_time"] == "08:00:00"

    resp = api.patch(f"{base}/editors/trip/stops/1", json={"field": "dwell_time_minutes", "value": 3}).json()
    assert resp["applied"] is False
    assert resp["error"] == "Enter edit mode first"

    api.post(f"{base}/editors/trip/edit")
    resp = api.patch(f"{base}/editors/trip", json={"trip_type": "express"}).json()
    assert resp["applied"] is True
    assert resp["editor"]["form"]["trip_type"] == "express"
    assert api.patch(f"{base}/editors/trip", json={"trip_type": "night"}).status_code == 422

    result = api.post(f"{base}/editors/trip/save").json()
    assert result["ok"] is True, result


def test_bus_editor_rejects_trip_fields(api):
    sid = new_session(api)
    base = f"/api/sessions/{sid}"
    api.post(f"{base}/buses/7/open")
    api.post(f"{base}/buses/routes/10/edit")

    resp = api.patch(f"{base}/editors/bus", json={"trip_type": "express"})
    assert resp.status_code == 422
    assert api.get(f"{base}/editors/bus").json()["dirty"] is False


def test_trip_rows_show_order_and_times(api):
    sid = new_session(api)
    rows = api.post(f"/api/sessions/{sid}/trips/20/open").json()["stops"]
    assert [row["position"] for row in rows] == [0, 1, 2]
    assert [row["sequence_order"] for row in rows] == [1, 2, 3]
    assert rows[0]["arrival_display"] == "8:00 AM"
    assert rows[2]["departure_display"] == "8:13 AM"


def test_upstream_not_found(api):
    sid = new_session(api)
    resp = api.post(f"/api/sessions/{sid}/trips/999/open")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Trip not found"


def test_creation_chain(api, fleet):
    sid = new_session(api)
    base = f"/api/sessions/{sid}/create"

    api.post(f"{base}/bus")
    api.patch(f"{base}/bus", json={"bus_number": "E-300", "imei_number": "356938035643814"})
    assert api.post(f"{base}/bus/submit").json()["ok"] is True

    session = api.get(f"/api/sessions/{sid}").json()
    assert session["modals"]["create_route"] is True
    assert session["flow"]["route"]["from_bus_creation"] is True
    assert api.put(f"{base}/route/buses", json={"bus_ids": [7]}).status_code == 409

    editors = f"/api/sessions/{sid}/editors/route"
    api.post(f"{editors}/stops/0/select", json=suggestion(STOP_D).model_dump())
    for field, value in [
        ("name", "Botanicheskaya"), ("latitude", 56.797), ("longitude", 60.633),
        ("travel_time_from_previous_stop_min", 12), ("travel_distance_from_previous_stop", 6.5),
    ]:
        api.patch(f"{editors}/stops/1", json={"field": field, "value": value})
    assert api.get(f"{base}/route").json()["stops"][1]["change"] == "new"

    result = api.post(f"{base}/route/submit").json()
    assert result["ok"] is True, result

    trip = api.get(f"{base}/trip").json()
    assert trip["linked"] is True
    assert trip["route_name"] == f"{STOP_D.name} → Botanicheskaya"
    assert len(trip["stop_times"]) == 2

    session = api.post(f"{base}/trip/close").json()
    assert session["modals"]["create_trip"] is False
    assert session["flow"]["trip"]["from_route_creation"] is False


def test_trip_creation_validation_message(api):
    sid = new_session(api)
    base = f"/api/sessions/{sid}/create"
    api.post(f"{base}/trip")
    api.put(f"{base}/trip/bus", json={"bus_id": 7})
    api.put(f"{base}/trip/route", json={"route_id": 10})
    api.patch(f"{base}/trip", json={"scheduled_start_time": "10:00", "scheduled_end_time": "09:00"})

    result = api.post(f"{base}/trip/submit").json()
    assert result["ok"] is False
    assert result["message"] == "End time must be after start time"
