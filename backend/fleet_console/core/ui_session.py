"""Per-operator UI state: open modals, selections, editors and creation flow.

One ``UISession`` stands for one dashboard tab. It is created by the
application and handed to whatever needs it; nothing here is global.
"""

import logging
import uuid
from dataclasses import dataclass

from fleet_console.core.creation_flow import (
    BusCreation,
    CreationFlow,
    CreationResult,
    RouteCreation,
    TripCreation,
)
from fleet_console.core.edit_session import CloseDecision, EditSession, NavigationIntent
from fleet_console.core.fleet_client import FleetApiError, FleetClient
from fleet_console.core.reconcile import build_process_stops_request, build_trip_update_payload
from fleet_console.core.stop_search import StopSearch
from fleet_console.core.stop_sequence import StopSequenceEditor
from fleet_console.core.time_utils import route_display_name
from fleet_console.schemas.bus import BusDetails
from fleet_console.schemas.forms import RouteEditForm, TripEditForm
from fleet_console.schemas.trip import TripDetail

logger = logging.getLogger(__name__)

EDIT_SCOPES = ("bus", "trip")
STOP_SCOPES = ("bus", "trip", "route")  # "route" is the route-creation builder


@dataclass
class Modals:
    create_bus: bool = False
    create_route: bool = False
    create_trip: bool = False
    bus_details: bool = False
    trip_details: bool = False


class UISession:
    def __init__(self, client: FleetClient, session_id: str | None = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.client = client
        self.modals = Modals()
        self.flow = CreationFlow()

        self.selected_bus_id: int | None = None
        self.bus_details: BusDetails | None = None
        self.selected_trip: TripDetail | None = None

        self.bus_editor: EditSession[RouteEditForm] | None = None
        self.trip_editor: EditSession[TripEditForm] | None = None

        self.bus_creation: BusCreation | None = None
        self.route_creation: RouteCreation | None = None
        self.trip_creation: TripCreation | None = None

        self._searches: dict[str, StopSearch] = {}

    # ------------------------------------------------------------------
    # Lookups

    def edit_session(self, scope: str) -> EditSession | None:
        if scope == "bus":
            return self.bus_editor
        if scope == "trip":
            return self.trip_editor
        raise KeyError(scope)

    def stop_editor(self, scope: str) -> StopSequenceEditor | None:
        if scope == "route":
            return self.route_creation.editor if self.route_creation else None
        session = self.edit_session(scope)
        return session.editor if session else None

    def search_for(self, scope: str) -> StopSearch:
        """The stop search behind the focused stop-name input of an editor."""
        if scope not in STOP_SCOPES:
            raise KeyError(scope)
        if scope not in self._searches:
            self._searches[scope] = StopSearch(self.client)
        return self._searches[scope]

    def _drop_search(self, scope: str) -> None:
        search = self._searches.pop(scope, None)
        if search is not None:
            search.reset()

    # ------------------------------------------------------------------
    # Bus details and the bus-scoped route editor

    async def open_bus_details(self, bus_id: int) -> BusDetails:
        details = await self.client.get_bus_details(bus_id)
        self.selected_bus_id = bus_id
        self.bus_details = details
        self.bus_editor = None
        self.modals.bus_details = True
        return details

    def edit_bus_route(self, route_id: int) -> EditSession[RouteEditForm]:
        if self.bus_details is None:
            raise LookupError("No bus selected")
        route = next((r for r in self.bus_details.routes if r.id == route_id), None)
        if route is None:
            raise LookupError(f"Route {route_id} is not assigned to bus {self.selected_bus_id}")
        self.bus_editor = EditSession("bus", RouteEditForm.from_route(route, bus_id=self.selected_bus_id))
        self.bus_editor.enter_edit()
        return self.bus_editor

    async def save_bus_route(self):
        return await self.bus_editor.save(self._submit_route)

    async def _submit_route(self, form: RouteEditForm, original: RouteEditForm | None) -> RouteEditForm:
        result = await self.client.process_stops(build_process_stops_request(form, original))
        if self.bus_details is not None:
            self.bus_details.routes = [
                result.route if r.id == form.route_id else r for r in self.bus_details.routes
            ]
        return RouteEditForm.from_route(result.route, bus_id=form.bus_id)

    # ------------------------------------------------------------------
    # Trip details and the trip editor

    def open_trip(self, trip: TripDetail) -> EditSession[TripEditForm]:
        self.selected_trip = trip
        self.trip_editor = EditSession("trip", TripEditForm.from_trip(trip), trip=True)
        self.modals.trip_details = True
        return self.trip_editor

    async def open_trip_by_id(self, trip_id: int) -> EditSession[TripEditForm]:
        return self.open_trip(await self.client.get_trip(trip_id))

    async def save_trip(self):
        return await self.trip_editor.save(self._submit_trip)

    async def _submit_trip(self, form: TripEditForm, original: TripEditForm | None) -> TripEditForm:
        trip = await self.client.update_trip(form.trip_id, build_trip_update_payload(form, original))
        self.selected_trip = trip
        return TripEditForm.from_trip(trip)

    # ------------------------------------------------------------------
    # Navigation between editors

    async def navigate(self, intent: NavigationIntent) -> CloseDecision:
        """Leave ``intent.source``; may stop for an unsaved-changes confirmation."""
        session = self.edit_session(intent.source)
        decision = session.request_close(intent) if session else CloseDecision.PROCEED
        if decision is CloseDecision.PROCEED:
            await self._complete(intent)
        return decision

    async def confirm_discard(self, scope: str) -> NavigationIntent | None:
        session = self.edit_session(scope)
        if session is None:
            return None
        intent = session.confirm_discard()
        if intent is not None:
            await self._complete(intent)
        return intent

    def keep_editing(self, scope: str) -> None:
        session = self.edit_session(scope)
        if session is not None:
            session.keep_editing()

    async def _complete(self, intent: NavigationIntent) -> None:
        self._drop_search(intent.source)
        if intent.target == "close":
            if intent.source == "bus":
                self.modals.bus_details = False
                self.bus_details = None
                self.bus_editor = None
                self.selected_bus_id = None
            else:
                self.modals.trip_details = False
                self.trip_editor = None
                self.selected_trip = None
        elif intent.target == "trip" and intent.target_id is not None:
            trip = None
            if self.bus_details is not None:
                trip = next((t for t in self.bus_details.trips if t.id == intent.target_id), None)
            if trip is not None:
                self.open_trip(trip)
            else:
                await self.open_trip_by_id(intent.target_id)
        logger.debug("Session %s: navigation %s completed", self.id, intent)

    # ------------------------------------------------------------------
    # Creation chain: bus -> route -> trip

    def open_create_bus(self) -> BusCreation:
        self.bus_creation = BusCreation()
        self.modals.create_bus = True
        return self.bus_creation

    def close_create_bus(self) -> None:
        self.bus_creation = None
        self.modals.create_bus = False

    async def submit_create_bus(self, continue_to_route: bool = True) -> CreationResult:
        result, bus = await self.bus_creation.submit(self.client)
        if not result.ok:
            return result
        self.close_create_bus()
        if continue_to_route:
            self.flow.bus_created(bus)
            self.open_create_route()
        return CreationResult(True, f'Bus "{bus.bus_number}" has been added.')

    def open_create_route(self) -> RouteCreation:
        self.route_creation = RouteCreation(self.flow.route)
        self.modals.create_route = True
        return self.route_creation

    async def use_existing_route(self, route_id: int) -> RouteCreation:
        route = await self.client.get_route(route_id)
        self.route_creation.use_existing_route(route)
        self._drop_search("route")
        return self.route_creation

    def close_create_route(self) -> None:
        """Cancel: nothing continues downstream, so the flow ends here."""
        self.route_creation = None
        self.modals.create_route = False
        self._drop_search("route")
        self.flow.reset()

    async def submit_create_route(self) -> CreationResult:
        creation = self.route_creation
        result, processed = await creation.submit(self.client)
        if not result.ok:
            return result

        linked_bus = creation.context.linked_bus_id if creation.context.from_bus_creation else None
        self.route_creation = None
        self.modals.create_route = False
        self._drop_search("route")
        self.flow.route_closed()

        if linked_bus is not None:
            route = processed.route
            self.flow.route_created(route.id, linked_bus, route_display_name(route.route_stops))
            self.open_create_trip(route)
        return result

    def open_create_trip(self, route=None) -> TripCreation:
        self.trip_creation = TripCreation(self.flow.trip, route=route)
        self.modals.create_trip = True
        return self.trip_creation

    async def select_trip_route(self, route_id: int) -> bool:
        try:
            route = await self.client.get_route(route_id)
        except FleetApiError as e:
            logger.warning("Could not load route %d for trip creation: %s", route_id, e.detail)
            return False
        return self.trip_creation.select_route(route)

    def close_create_trip(self) -> None:
        self.trip_creation = None
        self.modals.create_trip = False
        self.flow.trip_closed()

    async def submit_create_trip(self) -> CreationResult:
        result, _ = await self.trip_creation.submit(self.client)
        if result.ok:
            self.close_create_trip()
        return result


class SessionRegistry:
    """UI sessions by id, all sharing one fleet client."""

    def __init__(self, client: FleetClient) -> None:
        self.client = client
        self._sessions: dict[str, UISession] = {}

    def create(self) -> UISession:
        session = UISession(self.client)
        self._sessions[session.id] = session
        logger.info("Opened UI session %s", session.id)
        return session

    def get(self, session_id: str) -> UISession:
        return self._sessions[session_id]

    def drop(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Closed UI session %s", session_id)

    def __len__(self) -> int:
        return len(self._sessions)
