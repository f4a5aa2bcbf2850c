"""Stop reconciliation: classify edited stops and build update payloads.

Two separate questions are answered here:

* "is there anything to save?" -- a structural comparison of the whole form
  against the snapshot (``is_dirty``), sensitive to every field;
* "how is this stop submitted?" -- per-stop classification (``classify``).
  Unchanged stops go out as a bare ``stop_id`` reference; new and modified
  stops go out as a full name/latitude/longitude definition so the backend
  creates a fresh stop row instead of merging with a look-alike.
"""

import enum
import logging
from collections.abc import Sequence
from typing import TypeVar

import orjson
from pydantic import BaseModel

from fleet_console.core.time_utils import normalize_wall_time
from fleet_console.schemas.forms import RouteEditForm, TripEditForm
from fleet_console.schemas.route import ProcessStopsRequest
from fleet_console.schemas.stop import EditableStop, StopPayload
from fleet_console.schemas.trip import TripRouteStops, TripScalars, UpdateTripRequest

logger = logging.getLogger(__name__)

FormT = TypeVar("FormT", bound=BaseModel)


class StopChange(str, enum.Enum):
    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    NEW = "new"


def classify(editable: EditableStop, original: EditableStop | None) -> StopChange:
    """Classify one stop against the snapshot entry at the same position.

    Identity fields are only compared when the ids match. A slot resolved to a
    different persisted stop through selection is UNCHANGED and goes out as a
    plain ``stop_id`` reference.
    """
    if editable.id is None:
        return StopChange.NEW
    if editable.identity_edited:
        return StopChange.MODIFIED
    if original is not None and original.id == editable.id and original.identity() != editable.identity():
        return StopChange.MODIFIED
    return StopChange.UNCHANGED


def classify_sequence(
    stops: Sequence[EditableStop],
    snapshot_stops: Sequence[EditableStop] | None = None,
) -> list[StopChange]:
    snapshot_stops = snapshot_stops or []
    return [
        classify(stop, snapshot_stops[i] if i < len(snapshot_stops) else None)
        for i, stop in enumerate(stops)
    ]


def stop_payload(
    stop: EditableStop,
    change: StopChange,
    position: int,
    with_dwell: bool = True,
    with_times: bool = False,
) -> StopPayload:
    first = position == 0
    payload = StopPayload(
        travel_time_from_previous_stop_min=0 if first else stop.travel_time_from_previous_stop_min,
        travel_distance_from_previous_stop=0.0 if first else stop.travel_distance_from_previous_stop,
    )
    if change is StopChange.UNCHANGED:
        payload.stop_id = stop.id
    else:
        payload.name = stop.name.strip()
        payload.latitude = stop.latitude
        payload.longitude = stop.longitude
    if with_dwell:
        payload.dwell_time_minutes = stop.dwell_time_minutes
    if with_times:
        payload.approx_arrival_time = normalize_wall_time(stop.approx_arrival_time)
        payload.approx_departure_time = normalize_wall_time(stop.approx_departure_time)
    return payload


def build_route_stops_payload(
    stops: Sequence[EditableStop],
    snapshot_stops: Sequence[EditableStop] | None = None,
    with_dwell: bool = True,
    with_times: bool = False,
) -> list[StopPayload]:
    changes = classify_sequence(stops, snapshot_stops)
    payload = [
        stop_payload(stop, change, i, with_dwell=with_dwell, with_times=with_times)
        for i, (stop, change) in enumerate(zip(stops, changes))
    ]
    logger.debug(
        "Reconciled %d stops: %s", len(stops), ", ".join(c.value for c in changes),
    )
    return payload


def build_process_stops_request(
    form: RouteEditForm,
    snapshot: RouteEditForm | None = None,
    with_dwell: bool = True,
) -> ProcessStopsRequest:
    stops = build_route_stops_payload(
        form.stops, snapshot.stops if snapshot else None, with_dwell=with_dwell,
    )
    bus_ids = [b for b in form.bus_ids if b != form.bus_id] or None
    return ProcessStopsRequest(stops=stops, bus_id=form.bus_id, bus_ids=bus_ids)


def build_trip_update_payload(form: TripEditForm, snapshot: TripEditForm | None = None) -> UpdateTripRequest:
    stops = build_route_stops_payload(
        form.stops, snapshot.stops if snapshot else None, with_dwell=True, with_times=True,
    )
    return UpdateTripRequest(
        trip=TripScalars(
            trip_type=form.trip_type,
            scheduled_start_time=normalize_wall_time(form.scheduled_start_time) or "",
            scheduled_end_time=normalize_wall_time(form.scheduled_end_time) or "",
        ),
        route=TripRouteStops(stops=stops),
    )


# ----------------------------------------------------------------------
# Snapshots


def fingerprint(form: BaseModel) -> bytes:
    """Canonical serialized form; doubles as the immutable snapshot."""
    return orjson.dumps(form.model_dump(mode="json"), option=orjson.OPT_SORT_KEYS)


def is_dirty(form: BaseModel, snapshot: bytes | None) -> bool:
    if snapshot is None:
        return False
    return fingerprint(form) != snapshot


def restore(form_cls: type[FormT], snapshot: bytes) -> FormT:
    """Fresh deep copy of the snapshot, with all edit flags cleared."""
    return form_cls.model_validate(orjson.loads(snapshot))
