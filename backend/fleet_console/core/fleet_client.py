"""Async client for the fleet backend REST API."""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from fleet_console.config import settings
from fleet_console.schemas.bus import Bus, BusDetails, CreateBusRequest
from fleet_console.schemas.route import (
    ProcessStopsRequest,
    ProcessStopsResult,
    RouteSummary,
    RouteWithStops,
)
from fleet_console.schemas.stop import Pagination, StopSearchPage
from fleet_console.schemas.trip import CreateTripRequest, TripDetail, TripFilters, UpdateTripRequest

logger = logging.getLogger(__name__)

# Retry configuration (GET requests only)
MAX_RETRIES = 3
RETRY_BACKOFF = [1, 2, 4]  # seconds between retries


class FleetApiError(Exception):
    """A fleet API call failed: transport error, HTTP error or ``success: false``."""

    def __init__(self, message: str, errors: list[str] | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.status_code = status_code

    @property
    def detail(self) -> str:
        """Most specific message for the user."""
        return self.errors[0] if self.errors else self.message


def _error_from_body(body: Any, fallback: str, status_code: int | None) -> FleetApiError:
    if isinstance(body, dict):
        errors = [
            str(e.get("message")) for e in body.get("errors") or []
            if isinstance(e, dict) and e.get("message")
        ]
        return FleetApiError(str(body.get("message") or fallback), errors, status_code)
    return FleetApiError(fallback, status_code=status_code)


class FleetClient:
    """Buses, routes, stops and trips on the fleet backend."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        token = settings.fleet_api_token if token is None else token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=f"{(base_url or settings.fleet_api_base_url).rstrip('/')}/api",
            timeout=settings.request_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        label: str,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        """Send a request and return the envelope's ``data``.

        Idempotent GETs are retried on transport errors and 5xx responses.
        """
        attempts = MAX_RETRIES + 1 if method == "GET" else 1
        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, path, json=json, params=params)
                resp.raise_for_status()
                break
            except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.ConnectError) as e:
                if attempt < attempts - 1:
                    wait = RETRY_BACKOFF[attempt]
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %ds",
                        label, attempt + 1, attempts, type(e).__name__, wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                logger.error("%s failed after %d attempts: %s", label, attempts, e)
                raise FleetApiError(f"Could not reach the fleet service ({label})") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500 and attempt < attempts - 1:
                    wait = RETRY_BACKOFF[attempt]
                    logger.warning(
                        "%s attempt %d/%d got HTTP %d, retrying in %ds",
                        label, attempt + 1, attempts, status, wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                logger.error("%s failed with HTTP %d", label, status)
                try:
                    body = e.response.json()
                except ValueError:
                    body = None
                raise _error_from_body(body, f"Failed to {label}", status) from e
            except httpx.HTTPError as e:
                logger.exception("%s failed", label)
                raise FleetApiError(f"Failed to {label}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise FleetApiError(f"Malformed response for {label}", status_code=resp.status_code) from e

        if isinstance(body, dict) and body.get("success") is False:
            raise _error_from_body(body, f"Failed to {label}", resp.status_code)
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, label: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error("Unexpected %s payload: %s", label, e)
            raise FleetApiError(f"Malformed response for {label}") from e

    # ------------------------------------------------------------------
    # Stops and routes

    async def search_stops(self, query: str, page: int = 1, limit: int = 15) -> StopSearchPage:
        data = await self._request(
            "GET", "/stops/search", "search stops",
            params={"q": query, "page": page, "limit": limit},
        )
        result = self._parse(StopSearchPage, data, "stop search")
        logger.debug("Stop search %r page %d: %d hits", query, page, len(result.stops))
        return result

    async def process_stops(self, request: ProcessStopsRequest) -> ProcessStopsResult:
        body = request.model_dump(mode="json", exclude_none=True)
        data = await self._request("POST", "/routes/process-stops", "process stops", json=body)
        result = self._parse(ProcessStopsResult, data, "process stops")
        created = sum(1 for s in result.stops if s.status == "created")
        logger.info(
            "Route %d processed: %d stops (%d created, %d reused)",
            result.route.id, len(result.stops), created, len(result.stops) - created,
        )
        return result

    async def get_route(self, route_id: int) -> RouteWithStops:
        data = await self._request("GET", f"/routes/{route_id}", "load route")
        return self._parse(RouteWithStops, data, "route")

    async def get_routes_by_bus(self, bus_id: int) -> list[RouteSummary]:
        data = await self._request("GET", f"/routes/by-bus/{bus_id}", "load routes for bus")
        return [self._parse(RouteSummary, r, "route summary") for r in data.get("routes", [])]

    # ------------------------------------------------------------------
    # Buses

    async def get_buses(self) -> list[Bus]:
        data = await self._request("GET", "/buses", "load buses", params={"all": "true"})
        return [self._parse(Bus, b, "bus") for b in data.get("buses", [])]

    async def get_bus_details(self, bus_id: int) -> BusDetails:
        data = await self._request("GET", f"/buses/{bus_id}/details", "load bus details")
        return self._parse(BusDetails, data, "bus details")

    async def create_bus(self, request: CreateBusRequest) -> Bus:
        body = request.model_dump(mode="json", exclude_none=True)
        data = await self._request("POST", "/buses", "create bus", json=body)
        bus = self._parse(Bus, data.get("bus", data), "bus")
        logger.info("Created bus %s (id=%d)", bus.bus_number, bus.id)
        return bus

    # ------------------------------------------------------------------
    # Trips

    async def create_trip(self, request: CreateTripRequest) -> TripDetail:
        body = request.model_dump(mode="json")
        data = await self._request("POST", "/trips/create", "create trip", json=body)
        trip = self._parse(TripDetail, data.get("trip", data), "trip")
        logger.info("Created trip %d on route %d / bus %d", trip.id, trip.route_id, trip.bus_id)
        return trip

    async def get_trips(self, filters: TripFilters | None = None) -> tuple[list[TripDetail], Pagination | None]:
        params = (filters or TripFilters()).to_params()
        data = await self._request("GET", "/trips", "load trips", params=params)
        trips = [self._parse(TripDetail, t, "trip") for t in data.get("trips", [])]
        pagination = data.get("pagination")
        return trips, self._parse(Pagination, pagination, "pagination") if pagination else None

    async def get_trip(self, trip_id: int) -> TripDetail:
        data = await self._request("GET", f"/trips/{trip_id}", "load trip")
        return self._parse(TripDetail, data.get("trip", data), "trip")

    async def update_trip(self, trip_id: int, request: UpdateTripRequest) -> TripDetail:
        body = request.model_dump(mode="json", exclude_none=True)
        data = await self._request("PUT", f"/trips/{trip_id}", "update trip", json=body)
        trip = self._parse(TripDetail, data.get("trip", data), "trip")
        logger.info("Updated trip %d (%d stops)", trip.id, len(trip.trip_stop_times))
        return trip
