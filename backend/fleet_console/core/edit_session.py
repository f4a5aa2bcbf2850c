"""View/edit state machine for one editable route or trip form.

VIEWING --enter_edit--> EDITING (snapshot taken)
EDITING --undo--> EDITING (form restored, clean)
EDITING --save ok--> VIEWING (snapshot refreshed)
EDITING(clean) --close--> VIEWING
EDITING(dirty) --close--> confirmation pending
    confirm_discard -> VIEWING (form restored), navigation completes
    keep_editing    -> stays EDITING(dirty)
"""

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from fleet_console.core.fleet_client import FleetApiError
from fleet_console.core.reconcile import StopChange, classify_sequence, fingerprint, is_dirty, restore
from fleet_console.core.stop_sequence import StopSequenceEditor, ValidationIssue
from fleet_console.core.time_utils import time_to_minutes

logger = logging.getLogger(__name__)

FormT = TypeVar("FormT", bound=BaseModel)

# submit(current_form, snapshot_form) -> canonical saved form (or None to keep current)
Submit = Callable[[FormT, FormT], Awaitable[FormT | None]]


class SessionState(str, enum.Enum):
    VIEWING = "viewing"
    EDITING = "editing"


class CloseDecision(str, enum.Enum):
    PROCEED = "proceed"
    CONFIRM = "confirm"


@dataclass(frozen=True)
class NavigationIntent:
    """Where the user was going when an unsaved-changes check interrupted.

    ``source`` is the editor being left ("bus" or "trip"); ``target`` is
    "close" (dismiss the modal), "view" (back to read-only) or another
    editor scope, with ``target_id`` naming the entity to open.
    """

    source: str
    target: str
    target_id: int | None = None


@dataclass
class SaveResult:
    ok: bool
    message: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)


def schedule_issues(start: str, end: str) -> list[ValidationIssue]:
    """Scheduled start/end checks shared by trip creation and trip editing."""
    if not start:
        return [ValidationIssue(None, "scheduled_start_time", "Please select start time")]
    if not end:
        return [ValidationIssue(None, "scheduled_end_time", "Please select end time")]
    start_min = time_to_minutes(start)
    end_min = time_to_minutes(end)
    if start_min is None:
        return [ValidationIssue(None, "scheduled_start_time", "Start time must be HH:MM")]
    if end_min is None:
        return [ValidationIssue(None, "scheduled_end_time", "End time must be HH:MM")]
    if end_min <= start_min:
        return [ValidationIssue(None, "scheduled_end_time", "End time must be after start time")]
    return []


class EditSession(Generic[FormT]):
    """Owns the snapshot of one form and mediates every change to it."""

    def __init__(self, scope: str, form: FormT, read_only: bool = False, trip: bool = False) -> None:
        self.scope = scope
        self.trip = trip
        self.form = form
        self.state = SessionState.VIEWING
        self.dirty = False
        self._form_cls = type(form)
        self._snapshot: bytes | None = None
        self._pending: NavigationIntent | None = None
        self.editor = StopSequenceEditor(form.stops, read_only=read_only, on_change=self._recompute)
        self.editor.locked = True

    @property
    def editing(self) -> bool:
        return self.state is SessionState.EDITING

    @property
    def can_undo(self) -> bool:
        return self.editing and self.dirty

    @property
    def can_save(self) -> bool:
        return self.editing and self.dirty

    @property
    def pending_intent(self) -> NavigationIntent | None:
        return self._pending

    def snapshot_form(self) -> FormT | None:
        if self._snapshot is None:
            return None
        return restore(self._form_cls, self._snapshot)

    def classify(self) -> list[StopChange]:
        snapshot = self.snapshot_form()
        return classify_sequence(self.form.stops, snapshot.stops if snapshot else None)

    # ------------------------------------------------------------------

    def enter_edit(self) -> None:
        if self.editing:
            return
        self._snapshot = fingerprint(self.form)
        self.state = SessionState.EDITING
        self.dirty = False
        self._pending = None
        self.editor.locked = False
        logger.debug("%s editor: editing", self.scope)

    def update_form(self, **values) -> bool:
        """Change scalar fields of the form (trip type, schedule, bus link)."""
        if not self.editing:
            return False
        if "stops" in values:
            raise ValueError("Stops are changed through the sequence editor")
        unknown = set(values) - set(self._form_cls.model_fields)
        if unknown:
            raise ValueError(f"{self.scope} form has no fields {sorted(unknown)}")
        # Validate against the model before writing anything
        checked = self._form_cls.model_validate(
            {**self.form.model_dump(exclude={"stops"}), **values, "stops": []},
        )
        for name in values:
            setattr(self.form, name, getattr(checked, name))
        self._recompute()
        return True

    def undo(self) -> bool:
        if not self.editing:
            return False
        self._restore_snapshot()
        self.dirty = False
        return True

    def request_close(self, intent: NavigationIntent) -> CloseDecision:
        """Leave edit mode, unless unsaved changes need confirmation first."""
        if self.editing and self.dirty:
            self._pending = intent
            logger.debug("%s editor: unsaved changes, confirming %s", self.scope, intent)
            return CloseDecision.CONFIRM
        if self.editing:
            self._leave_edit()
        return CloseDecision.PROCEED

    def cancel(self) -> CloseDecision:
        return self.request_close(NavigationIntent(self.scope, "view"))

    def confirm_discard(self) -> NavigationIntent | None:
        """Discard changes and hand back the interrupted navigation."""
        intent = self._pending
        if intent is None:
            return None
        self._pending = None
        self._leave_edit()
        logger.info("%s editor: discarded unsaved changes", self.scope)
        return intent

    def keep_editing(self) -> None:
        self._pending = None

    def validate(self) -> list[ValidationIssue]:
        issues = self.editor.validate(trip=self.trip)
        if self.trip:
            issues = schedule_issues(
                getattr(self.form, "scheduled_start_time", ""),
                getattr(self.form, "scheduled_end_time", ""),
            ) + issues
        return issues

    async def save(self, submit: Submit) -> SaveResult:
        """Validate and submit. Any failure leaves the session untouched."""
        if not self.editing:
            return SaveResult(ok=False, message="Not in edit mode")
        if not self.dirty:
            return SaveResult(ok=False, message="No changes to save")

        issues = self.validate()
        if issues:
            return SaveResult(ok=False, message=issues[0].message, issues=issues)

        try:
            saved = await submit(self.form, self.snapshot_form())
        except FleetApiError as e:
            logger.warning("%s editor: save failed: %s", self.scope, e.detail)
            return SaveResult(ok=False, message=e.detail)
        except ValidationError as e:
            logger.error("%s editor: saved form did not validate: %s", self.scope, e)
            return SaveResult(ok=False, message="Saved data could not be read back")

        self._snapshot = fingerprint(saved if saved is not None else self.form)
        self._restore_snapshot()
        self.dirty = False
        self.state = SessionState.VIEWING
        self.editor.locked = True
        logger.info("%s editor: saved", self.scope)
        return SaveResult(ok=True)

    # ------------------------------------------------------------------

    def _leave_edit(self) -> None:
        if self._snapshot is not None:
            self._restore_snapshot()
        self.dirty = False
        self.state = SessionState.VIEWING
        self.editor.locked = True

    def _restore_snapshot(self) -> None:
        self.form = restore(self._form_cls, self._snapshot)
        self.editor.load(self.form.stops)

    def _recompute(self) -> None:
        self.dirty = self.editing and is_dirty(self.form, self._snapshot)
