"""Wall-clock helpers for trip schedules (``HH:MM`` / ``HH:MM:SS`` strings)."""

import datetime
import logging
from collections.abc import Sequence

from fleet_console.schemas.route import RouteStop

logger = logging.getLogger(__name__)


def parse_wall_time(raw: str | None) -> datetime.time | None:
    """Parse 'HH:MM' or 'HH:MM:SS'. Returns None for anything else."""
    if not raw:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.datetime.strptime(raw.strip(), fmt).time()
        except ValueError:
            continue
    return None


def normalize_wall_time(raw: str | None) -> str | None:
    """Return the persisted 'HH:MM:SS' form, or the input unchanged if unparseable."""
    parsed = parse_wall_time(raw)
    if parsed is None:
        return raw
    return parsed.strftime("%H:%M:%S")


def time_to_minutes(raw: str) -> int | None:
    parsed = parse_wall_time(raw)
    if parsed is None:
        return None
    return parsed.hour * 60 + parsed.minute


def format_time(raw: str | None, hour12: bool = True, show_seconds: bool = False) -> str:
    """Format a wall-clock string for display, e.g. '16:00:00' -> '4:00 PM'."""
    if not raw:
        return "N/A"

    parsed = parse_wall_time(raw)
    if parsed is None:
        logger.debug("Unparseable time %r, showing as-is", raw)
        return raw

    if hour12:
        period = "PM" if parsed.hour >= 12 else "AM"
        hours = parsed.hour % 12 or 12
        if show_seconds:
            return f"{hours}:{parsed.minute:02d}:{parsed.second:02d} {period}"
        return f"{hours}:{parsed.minute:02d} {period}"

    if show_seconds:
        return f"{parsed.hour:02d}:{parsed.minute:02d}:{parsed.second:02d}"
    return f"{parsed.hour:02d}:{parsed.minute:02d}"


def route_display_name(route_stops: Sequence[RouteStop]) -> str:
    """'First → Last' label for a route."""
    if not route_stops:
        return "No stops"
    ordered = sorted(route_stops, key=lambda rs: rs.sequence_order)
    if len(ordered) == 1:
        return ordered[0].stop.name
    return f"{ordered[0].stop.name} → {ordered[-1].stop.name}"
