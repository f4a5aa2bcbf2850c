"""Resolve free-text stop names against the fleet stop search.

A ``StopSearch`` backs one stop-name input: it debounces keystrokes, pages
through results ("load more" appends, a new query replaces), and keeps
search failures as a soft warning so the stop can still be typed by hand.
Selection of a suggestion goes through ``select_suggestion``, which refuses
duplicates and writes the resolved stop in one update.
"""

import asyncio
import logging
from dataclasses import dataclass

from fleet_console.config import settings
from fleet_console.core.fleet_client import FleetApiError, FleetClient
from fleet_console.core.stop_sequence import StopSequenceEditor, duplicate_position
from fleet_console.schemas.stop import EditableStop, Pagination, StopSuggestion

logger = logging.getLogger(__name__)


class StopSearch:
    """Debounced, paged stop search for a single input."""

    def __init__(
        self,
        client: FleetClient,
        debounce_ms: int | None = None,
        min_chars: int | None = None,
        page_size: int | None = None,
    ) -> None:
        self._client = client
        self.debounce_ms = settings.search_debounce_ms if debounce_ms is None else debounce_ms
        self.min_chars = settings.search_min_chars if min_chars is None else min_chars
        self.page_size = settings.search_page_size if page_size is None else page_size

        self.suggestions: list[StopSuggestion] = []
        self.pagination: Pagination | None = None
        self.error: str | None = None
        self.is_loading = False
        self.query = ""
        self.page = 1

        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        # Every dispatched request gets a number; older responses are dropped
        self._dispatched = 0
        self._applied = 0

    @property
    def has_more(self) -> bool:
        return (
            self.pagination is not None
            and self.page < self.pagination.total_pages
            and not self.is_loading
            and self._timer is None  # a new query is waiting out the debounce
        )

    @property
    def remaining(self) -> int:
        if self.pagination is None:
            return 0
        return max(0, self.pagination.total - len(self.suggestions))

    def search(self, query: str) -> None:
        """Start a new search after the quiet window; resets paging.

        A pending timer is replaced, never stacked. A request that has already
        been sent is left alone; if it answers late it is discarded.
        """
        self.query = query
        self.page = 1
        self._cancel_timer()

        if len(query) < max(self.min_chars, 1):
            self._clear()
            return

        self._timer = self._spawn(self._debounced(query))

    async def load_more(self) -> bool:
        """Fetch and append the next page. No-op while a request is in flight."""
        if not self.has_more:
            return False
        self.page += 1
        await self._perform(self.query, self.page, append=True)
        return True

    async def flush(self) -> None:
        """Wait for the pending debounced search and any in-flight request."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def reset(self) -> None:
        self._cancel_timer()
        self.query = ""
        self.page = 1
        self._clear()

    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _clear(self) -> None:
        self.suggestions = []
        self.pagination = None
        self.error = None
        self.is_loading = False
        # Invalidate anything still in flight
        self._dispatched += 1
        self._applied = self._dispatched

    async def _debounced(self, query: str) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        # From here on the request belongs to nobody's timer: a new keystroke
        # must not cancel it.
        self._timer = None
        await self._perform(query, 1, append=False)

    async def _perform(self, query: str, page: int, append: bool) -> None:
        self._dispatched += 1
        seq = self._dispatched
        self.is_loading = True
        self.error = None

        try:
            result = await self._client.search_stops(query, page, self.page_size)
        except FleetApiError as e:
            if seq <= self._applied:
                return
            self._applied = seq
            self.is_loading = seq < self._dispatched
            logger.warning("Stop search for %r failed: %s", query, e.message)
            self.error = e.message or "Failed to search stops"
            self.suggestions = []
            self.pagination = None
            return

        if seq <= self._applied:
            logger.debug("Discarding stale stop search response for %r (#%d)", query, seq)
            return
        self._applied = seq
        self.is_loading = seq < self._dispatched

        if append and self.suggestions:
            self.suggestions = [*self.suggestions, *result.stops]
        else:
            self.suggestions = list(result.stops)
            self.page = page
        self.pagination = result.pagination


@dataclass
class SelectionResult:
    accepted: bool
    error: str | None = None


def find_duplicate(stops: list[EditableStop], index: int, suggestion: StopSuggestion) -> int | None:
    """Position of another stop (not ``index``) with the suggestion's id or name."""
    return duplicate_position(stops, index, suggestion.id, suggestion.name)


def select_suggestion(
    editor: StopSequenceEditor,
    index: int,
    suggestion: StopSuggestion,
    search: StopSearch | None = None,
) -> SelectionResult:
    """Resolve slot ``index`` to a persisted stop.

    Duplicates are rejected without touching the editor. Otherwise name,
    coordinates and id are written together as one replacement of the stop.
    """
    if editor.duplicate_of(index, suggestion.id, suggestion.name) is not None:
        logger.info("Rejected duplicate stop %r (id=%d) at position %d", suggestion.name, suggestion.id, index)
        return SelectionResult(accepted=False, error=f'"{suggestion.name}" is already in this route')

    written = editor.apply_update(
        index,
        {
            "name": suggestion.name,
            "latitude": suggestion.latitude,
            "longitude": suggestion.longitude,
            "id": suggestion.id,
        },
        identity_edited=False,
    )
    if not written:
        return SelectionResult(accepted=False, error="This stop cannot be changed")

    if search is not None:
        search.reset()
    return SelectionResult(accepted=True)
