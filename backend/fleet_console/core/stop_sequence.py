"""Ordered stop buffer used by the route and trip editors.

The list order is the stop order. The first and last stops are the route's
structural endpoints: they can be edited but never removed, and the buffer
never holds fewer than two stops.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from fleet_console.core.time_utils import parse_wall_time
from fleet_console.schemas.stop import IDENTITY_FIELDS, EditableStop

logger = logging.getLogger(__name__)

MIN_STOPS = 2

EDITABLE_FIELDS = frozenset({
    "name",
    "latitude",
    "longitude",
    "travel_time_from_previous_stop_min",
    "travel_distance_from_previous_stop",
    "dwell_time_minutes",
    "approx_arrival_time",
    "approx_departure_time",
})

# Fields a read-only (already persisted) topology refuses to change
_TOPOLOGY_FIELDS = frozenset(IDENTITY_FIELDS) | {"id"}


@dataclass
class ValidationIssue:
    index: int | None  # stop position, None for form-level issues
    field: str | None
    message: str


def duplicate_position(stops: list[EditableStop], index: int, stop_id: int | None, name: str) -> int | None:
    """Position of another stop (not ``index``) with the same id or case-insensitive name."""
    wanted = name.strip().lower()
    for i, stop in enumerate(stops):
        if i == index:
            continue
        if stop_id is not None and stop.id == stop_id:
            return i
        if wanted and stop.name.strip().lower() == wanted:
            return i
    return None


class StopSequenceEditor:
    """Insert/remove/update operations over a list of EditableStop.

    The editor mutates the list it was given, so the owning form always sees
    the current stops. ``locked`` is set by the edit session while viewing;
    ``read_only`` marks a topology taken from an existing route.
    """

    def __init__(
        self,
        stops: list[EditableStop] | None = None,
        read_only: bool = False,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.read_only = read_only
        self.locked = False
        self._on_change = on_change
        self._stops: list[EditableStop] = []
        self.load(stops if stops is not None else [])

    def load(self, stops: list[EditableStop]) -> None:
        """Bind to a (new) list of stops, padding it to the minimum length."""
        while len(stops) < MIN_STOPS:
            stops.append(EditableStop())
        self._stops = stops

    @property
    def stops(self) -> list[EditableStop]:
        return self._stops

    def __len__(self) -> int:
        return len(self._stops)

    def __getitem__(self, index: int) -> EditableStop:
        return self._stops[index]

    # ------------------------------------------------------------------

    def positions(self, base: int = 0) -> list[int]:
        return [i + base for i in range(len(self._stops))]

    def with_sequence_order(self) -> Iterator[tuple[int, EditableStop]]:
        for i, stop in enumerate(self._stops):
            yield i + 1, stop

    def is_anchor(self, index: int) -> bool:
        return index == 0 or index == len(self._stops) - 1

    # ------------------------------------------------------------------

    def insert_after(self, index: int) -> bool:
        """Insert a blank stop after ``index``. Not allowed after the end stop."""
        self._check_index(index)
        if not self._can_change_topology():
            return False
        if index == len(self._stops) - 1:
            return False
        self._stops.insert(index + 1, EditableStop())
        self._changed()
        return True

    def remove_at(self, index: int) -> bool:
        """Remove an interior stop. Removing an endpoint is a no-op."""
        self._check_index(index)
        if not self._can_change_topology():
            return False
        if self.is_anchor(index) or len(self._stops) <= MIN_STOPS:
            return False
        self._stops.pop(index)
        self._changed()
        return True

    def update_field(self, index: int, field: str, value: Any) -> bool:
        """Set one field of one stop.

        Hand edits of name/latitude/longitude flag the stop as modified. The
        stop keeps its id, but it is then submitted as a new stop definition.
        """
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown stop field: {field}")
        return self._write(index, {field: value}, identity_edited=None)

    def apply_update(self, index: int, updates: dict[str, Any], identity_edited: bool | None = None) -> bool:
        """Write several fields as one replacement of the stop."""
        unknown = set(updates) - EDITABLE_FIELDS - {"id"}
        if unknown:
            raise ValueError(f"Unknown stop fields: {sorted(unknown)}")
        return self._write(index, updates, identity_edited=identity_edited)

    def duplicate_of(self, index: int, stop_id: int | None, name: str) -> int | None:
        return duplicate_position(self._stops, index, stop_id, name)

    # ------------------------------------------------------------------

    def validate(self, trip: bool = False) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if len(self._stops) < MIN_STOPS:
            issues.append(ValidationIssue(None, None, "At least 2 stops are required"))
            return issues

        for i, stop in enumerate(self._stops):
            n = i + 1
            if not stop.name.strip():
                issues.append(ValidationIssue(i, "name", f"Stop {n} name is required"))
            if stop.latitude == 0 and stop.longitude == 0:
                issues.append(ValidationIssue(i, "latitude", f"Stop {n} coordinates are required"))
            else:
                if not -90 <= stop.latitude <= 90:
                    issues.append(ValidationIssue(i, "latitude", f"Stop {n} latitude must be between -90 and 90"))
                if not -180 <= stop.longitude <= 180:
                    issues.append(ValidationIssue(i, "longitude", f"Stop {n} longitude must be between -180 and 180"))
            if i > 0 and (
                stop.travel_time_from_previous_stop_min <= 0
                or stop.travel_distance_from_previous_stop <= 0
            ):
                issues.append(ValidationIssue(
                    i, "travel_time_from_previous_stop_min",
                    f"Stop {n} must have valid travel time and distance",
                ))
            if stop.dwell_time_minutes < 0:
                issues.append(ValidationIssue(i, "dwell_time_minutes", f"Stop {n} dwell time cannot be negative"))
            first = self.duplicate_of(i, stop.id, stop.name)
            if first is not None and first < i:  # report the later occurrence only
                issues.append(ValidationIssue(i, "name", f'"{stop.name}" is already in this route'))
            if trip:
                issues.extend(self._validate_times(i, stop))

        return issues

    @staticmethod
    def _validate_times(i: int, stop: EditableStop) -> list[ValidationIssue]:
        n = i + 1
        if not stop.approx_arrival_time or not stop.approx_departure_time:
            return [ValidationIssue(
                i, "approx_arrival_time",
                f"Stop {n}: Both arrival and departure times are required",
            )]
        issues = []
        for field in ("approx_arrival_time", "approx_departure_time"):
            if parse_wall_time(getattr(stop, field)) is None:
                issues.append(ValidationIssue(i, field, f"Stop {n}: {field} must be HH:MM or HH:MM:SS"))
        return issues

    # ------------------------------------------------------------------

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._stops):
            raise IndexError(f"Stop index {index} out of range (0..{len(self._stops) - 1})")

    def _can_change_topology(self) -> bool:
        if self.locked:
            logger.debug("Sequence is locked, ignoring change")
            return False
        if self.read_only:
            logger.debug("Sequence is read-only, ignoring topology change")
            return False
        return True

    def _write(self, index: int, updates: dict[str, Any], identity_edited: bool | None) -> bool:
        self._check_index(index)
        if self.locked:
            return False
        if self.read_only and _TOPOLOGY_FIELDS & set(updates):
            return False

        old = self._stops[index]
        # Validate the whole replacement before touching the list
        new = EditableStop.model_validate({**old.model_dump(), **updates})

        if identity_edited is None:
            touched = any(
                getattr(new, f) != getattr(old, f) for f in IDENTITY_FIELDS if f in updates
            )
            new.mark_identity_edited(old.identity_edited or touched)
        else:
            new.mark_identity_edited(identity_edited)

        self._stops[index] = new
        self._changed()
        return True

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
