"""Bus -> route -> trip creation chain.

Creating a bus can continue straight into route creation linked to that bus,
and a route created that way continues into trip creation linked to both.
The linkage lives in a ``CreationFlow`` held by the UI session; it is set
when an upstream modal succeeds and cleared when the downstream modal closes.
"""

import logging
from dataclasses import dataclass, field

from fleet_console.core.edit_session import schedule_issues
from fleet_console.core.fleet_client import FleetApiError, FleetClient
from fleet_console.core.reconcile import build_process_stops_request
from fleet_console.core.stop_sequence import StopSequenceEditor, ValidationIssue
from fleet_console.core.time_utils import normalize_wall_time, parse_wall_time
from fleet_console.schemas.bus import Bus, CreateBusRequest
from fleet_console.schemas.forms import RouteEditForm
from fleet_console.schemas.route import ProcessStopsRequest, ProcessStopsResult, RouteWithStops
from fleet_console.schemas.trip import CreateTripRequest, TripDetail, TripStopTimeInput, TripType

logger = logging.getLogger(__name__)


@dataclass
class RouteFlowContext:
    from_bus_creation: bool = False
    linked_bus_id: int | None = None
    linked_bus_number: str | None = None


@dataclass
class TripFlowContext:
    from_route_creation: bool = False
    linked_bus_id: int | None = None
    linked_route_id: int | None = None
    linked_route_name: str | None = None


class CreationFlow:
    def __init__(self) -> None:
        self.route = RouteFlowContext()
        self.trip = TripFlowContext()

    def bus_created(self, bus: Bus) -> RouteFlowContext:
        self.route = RouteFlowContext(
            from_bus_creation=True,
            linked_bus_id=bus.id,
            linked_bus_number=bus.bus_number,
        )
        logger.info("Creation flow: bus %s -> route", bus.bus_number)
        return self.route

    def route_created(self, route_id: int, bus_id: int, route_name: str | None = None) -> TripFlowContext:
        self.route = RouteFlowContext()
        self.trip = TripFlowContext(
            from_route_creation=True,
            linked_bus_id=bus_id,
            linked_route_id=route_id,
            linked_route_name=route_name,
        )
        logger.info("Creation flow: route %d -> trip (bus %d)", route_id, bus_id)
        return self.trip

    def route_closed(self) -> None:
        self.route = RouteFlowContext()

    def trip_closed(self) -> None:
        self.trip = TripFlowContext()

    def reset(self) -> None:
        self.route = RouteFlowContext()
        self.trip = TripFlowContext()


@dataclass
class CreationResult:
    ok: bool
    message: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)


# ----------------------------------------------------------------------


class BusCreation:
    def __init__(self) -> None:
        self.bus_number = ""
        self.imei_number = ""
        self.name = ""

    def validate(self) -> list[ValidationIssue]:
        issues = []
        if not self.bus_number.strip():
            issues.append(ValidationIssue(None, "bus_number", "Bus number is required"))
        if not self.imei_number.strip():
            issues.append(ValidationIssue(None, "imei_number", "IMEI number is required"))
        return issues

    def build_request(self) -> CreateBusRequest:
        return CreateBusRequest(
            bus_number=self.bus_number.strip(),
            imei_number=self.imei_number.strip(),
            name=self.name.strip() or None,
        )

    async def submit(self, client: FleetClient) -> tuple[CreationResult, Bus | None]:
        issues = self.validate()
        if issues:
            return CreationResult(False, issues[0].message, issues), None
        try:
            bus = await client.create_bus(self.build_request())
        except FleetApiError as e:
            return CreationResult(False, e.detail), None
        return CreationResult(True), bus


class RouteCreation:
    """Route builder: a fresh stop sequence, or an existing route to link buses to."""

    def __init__(self, context: RouteFlowContext) -> None:
        self.context = context
        self.existing_route: RouteWithStops | None = None
        self.form = RouteEditForm.blank(bus_id=self._linked_bus())
        self.editor = StopSequenceEditor(self.form.stops)

    def _linked_bus(self) -> int | None:
        return self.context.linked_bus_id if self.context.from_bus_creation else None

    def select_buses(self, bus_ids: list[int]) -> bool:
        """Multi-select bus linkage; fixed when the flow already links a bus."""
        if self.context.from_bus_creation:
            return False
        self.form.bus_ids = list(dict.fromkeys(bus_ids))
        return True

    def use_existing_route(self, route: RouteWithStops) -> None:
        """Pick a persisted route; its stops become read-only."""
        bus_ids = self.form.bus_ids
        self.existing_route = route
        self.form = RouteEditForm.from_route(route, bus_id=self._linked_bus())
        self.form.bus_ids = bus_ids
        self.editor = StopSequenceEditor(self.form.stops, read_only=True)

    def clear_existing_route(self) -> None:
        bus_ids = self.form.bus_ids
        self.existing_route = None
        self.form = RouteEditForm.blank(bus_id=self._linked_bus())
        self.form.bus_ids = bus_ids
        self.editor = StopSequenceEditor(self.form.stops)

    def validate(self) -> list[ValidationIssue]:
        issues = self.editor.validate()
        if self.existing_route is not None and not (self.form.bus_id or self.form.bus_ids):
            issues.append(ValidationIssue(None, "bus_ids", "Select at least one bus to link to this route"))
        return issues

    def build_request(self) -> ProcessStopsRequest:
        # No snapshot: stops with an id are references, everything else is new
        return build_process_stops_request(self.form, None)

    async def submit(self, client: FleetClient) -> tuple[CreationResult, ProcessStopsResult | None]:
        issues = self.validate()
        if issues:
            return CreationResult(False, issues[0].message, issues), None
        try:
            result = await client.process_stops(self.build_request())
        except FleetApiError as e:
            return CreationResult(False, e.detail), None
        return CreationResult(True, f"Route with {len(result.route.route_stops)} stops has been created."), result


class TripCreation:
    """Trip scheduler: bus, route, times and the per-stop timing grid."""

    def __init__(self, context: TripFlowContext, route: RouteWithStops | None = None) -> None:
        self.context = context
        self.bus_id: int | None = None
        self.route_id: int | None = None
        self.route: RouteWithStops | None = None
        self.trip_type: TripType = "regular"
        self.scheduled_start_time = ""
        self.scheduled_end_time = ""
        self.stop_times: list[TripStopTimeInput] = []

        if context.from_route_creation:
            self.bus_id = context.linked_bus_id
            self.route_id = context.linked_route_id
        if route is not None:
            self.select_route(route)

    @property
    def linked(self) -> bool:
        return self.context.from_route_creation

    def select_bus(self, bus_id: int | None) -> bool:
        if self.linked:
            return False
        if bus_id != self.bus_id:
            self.route_id = None
            self.route = None
            self.stop_times = []
        self.bus_id = bus_id
        return True

    def select_route(self, route: RouteWithStops) -> bool:
        if self.linked and route.id != self.context.linked_route_id:
            return False
        self.route_id = route.id
        self.route = route
        self.stop_times = [
            TripStopTimeInput(stop_id=rs.stop_id) for rs in route.ordered_stops()
        ]
        return True

    def update_stop_time(self, index: int, field: str, value: str) -> None:
        if field not in ("approx_arrival_time", "approx_departure_time"):
            raise ValueError(f"Unknown stop time field: {field}")
        current = self.stop_times[index]
        self.stop_times[index] = current.model_copy(update={field: value})

    def validate(self) -> list[ValidationIssue]:
        if not self.bus_id:
            return [ValidationIssue(None, "bus_id", "Please select a bus")]
        if not self.route_id:
            return [ValidationIssue(None, "route_id", "Please select a route")]
        issues = schedule_issues(self.scheduled_start_time, self.scheduled_end_time)
        if issues:
            return issues
        for i, st in enumerate(self.stop_times):
            if not st.approx_arrival_time or not st.approx_departure_time:
                return [ValidationIssue(
                    i, "approx_arrival_time",
                    f"Stop {i + 1}: Both arrival and departure times are required",
                )]
            if parse_wall_time(st.approx_arrival_time) is None or parse_wall_time(st.approx_departure_time) is None:
                return [ValidationIssue(i, "approx_arrival_time", f"Stop {i + 1}: times must be HH:MM")]
        return []

    def build_request(self) -> CreateTripRequest:
        return CreateTripRequest(
            route_id=self.route_id,
            bus_id=self.bus_id,
            scheduled_start_time=normalize_wall_time(self.scheduled_start_time),
            scheduled_end_time=normalize_wall_time(self.scheduled_end_time),
            trip_type=self.trip_type,
            stops=[
                TripStopTimeInput(
                    stop_id=st.stop_id,
                    approx_arrival_time=normalize_wall_time(st.approx_arrival_time),
                    approx_departure_time=normalize_wall_time(st.approx_departure_time),
                )
                for st in self.stop_times
            ],
        )

    async def submit(self, client: FleetClient) -> tuple[CreationResult, TripDetail | None]:
        issues = self.validate()
        if issues:
            return CreationResult(False, issues[0].message, issues), None
        try:
            trip = await client.create_trip(self.build_request())
        except FleetApiError as e:
            return CreationResult(False, e.detail), None
        return CreationResult(True, "Trip has been scheduled successfully."), trip
