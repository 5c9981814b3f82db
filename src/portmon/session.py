"""Session state for portmon: view parameters, derived rows and the input state machine."""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key

from portmon.events import KillCompleted, ScanCompleted, ScanFailed, ScanStarted, SessionEvent
from portmon.models import (
    Classification,
    CollectionFailed,
    ConnectionState,
    ProcessRecord,
    ProcessSnapshot,
)

logger = logging.getLogger(__name__)


class SortKey(Enum):
    """Sort keys for the process table, in cycling order."""

    PID = "PID"
    NAME = "Name"
    PORT_COUNT = "Ports"
    CPU = "CPU"
    MEMORY = "Mem"


class Action(Enum):
    """Discrete user actions the session understands."""

    QUIT = "quit"
    SWITCH_GROUP = "switch_group"
    TOGGLE_SELECTION = "toggle_selection"
    INITIATE_KILL = "initiate_kill"
    TOGGLE_PORTS_ONLY = "toggle_ports_only"
    CYCLE_SORT_KEY = "cycle_sort_key"
    TOGGLE_SORT_DIRECTION = "toggle_sort_direction"
    ENTER_SEARCH = "enter_search"
    SEARCH_TEXT_CHANGED = "search_text_changed"
    COMMIT_SEARCH = "commit_search"
    LEAVE_SEARCH = "leave_search"
    CONFIRM_KILL = "confirm_kill"
    CANCEL_KILL = "cancel_kill"


# Input modes. Exactly one is active at a time.


@dataclass(slots=True, frozen=True)
class Normal:
    """Navigation and view keys are honored."""


@dataclass(slots=True, frozen=True)
class Searching:
    """Keystrokes edit the search text."""

    buffer: str = ""


@dataclass(slots=True, frozen=True)
class ConfirmingKill:
    """Waiting for the user to confirm killing targets."""

    targets: tuple[int, ...]


Mode = Normal | Searching | ConfirmingKill


# Effects the caller must carry out after dispatching an action or event.


@dataclass(slots=True, frozen=True)
class Quit:
    pass


@dataclass(slots=True, frozen=True)
class StartKill:
    targets: tuple[int, ...]


@dataclass(slots=True, frozen=True)
class RequestRefresh:
    pass


Effect = Quit | StartKill | RequestRefresh


@dataclass(slots=True)
class ViewParameters:
    """User-controlled filter, sort, search and selection settings."""

    active_group: Classification = Classification.OWNED_BY_CURRENT_USER
    sort_key: SortKey = SortKey.PORT_COUNT
    sort_descending: bool = True
    ports_only: bool = True
    search_text: str = ""
    selection: set[int] = field(default_factory=set)


@dataclass(slots=True)
class WorkflowState:
    """Input mode, transient notification and loading flag."""

    mode: Mode = field(default_factory=Normal)
    message: str = ""
    message_expires_at: float = 0.0
    is_loading: bool = False


@dataclass(slots=True, frozen=True)
class Row:
    """One visible table row derived from a record."""

    record: ProcessRecord
    selected: bool
    ports: str

    @property
    def pid(self) -> int:
        return self.record.pid


def format_ports(record: ProcessRecord) -> str:
    """Render listening ports first, then the rest, each in enumeration order."""
    listening = [
        f"{c.port}(L)" for c in record.connections if c.state is ConnectionState.LISTENING
    ]
    other = [f"{c.port}(E)" for c in record.connections if c.state is not ConnectionState.LISTENING]
    return ", ".join(listening + other)


def matches_search(record: ProcessRecord, search_text: str) -> bool:
    """Case-insensitive match against the name or any port number."""
    needle = search_text.lower()
    if needle in record.name.lower():
        return True
    return any(needle in str(c.port) for c in record.connections)


_SORT_FIELDS: dict[SortKey, Callable[[ProcessRecord], object]] = {
    SortKey.PID: lambda r: r.pid,
    SortKey.NAME: lambda r: r.name,
    SortKey.PORT_COUNT: lambda r: len(r.connections),
    SortKey.CPU: lambda r: r.cpu_percent,
    SortKey.MEMORY: lambda r: r.memory_bytes,
}


def _compare(a: object, b: object) -> int:
    return (a > b) - (a < b)


def sort_records(
    records: Iterable[ProcessRecord], sort_key: SortKey, descending: bool
) -> list[ProcessRecord]:
    """
    Sort records on one key with ascending pid as the tie-break.

    Descending inverts only the primary comparison, so ties always resolve
    by ascending pid.
    """
    field_of = _SORT_FIELDS[sort_key]

    def compare(left: ProcessRecord, right: ProcessRecord) -> int:
        primary = _compare(field_of(left), field_of(right))
        if descending:
            primary = -primary
        return primary or _compare(left.pid, right.pid)

    return sorted(records, key=cmp_to_key(compare))


def derive_rows(snapshot: ProcessSnapshot | None, view: ViewParameters) -> list[Row]:
    """Filter and sort a snapshot into visible rows. Pure; same input, same output."""
    if snapshot is None:
        return []

    visible = []
    for record in snapshot.records:
        if record.classification is not view.active_group:
            continue
        if view.ports_only and not record.connections:
            continue
        if view.search_text and not matches_search(record, view.search_text):
            continue
        visible.append(record)

    return [
        Row(record=record, selected=record.pid in view.selection, ports=format_ports(record))
        for record in sort_records(visible, view.sort_key, view.sort_descending)
    ]


class Session:
    """
    Owns the latest snapshot, view parameters and workflow state.

    All mutation goes through dispatch() for user actions and apply() for
    background results. Both return an optional Effect for the caller to run.
    Rows are re-derived from scratch after every change.
    """

    def __init__(
        self,
        view: ViewParameters | None = None,
        message_duration: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.view = view if view is not None else ViewParameters()
        self.workflow = WorkflowState()
        self.snapshot: ProcessSnapshot | None = None
        self.error: CollectionFailed | None = None
        self._message_duration = message_duration
        self._clock = clock
        self._rows: list[Row] = []
        self._cursor: int | None = None
        self._derive()

    @property
    def mode(self) -> Mode:
        return self.workflow.mode

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    @property
    def cursor(self) -> int | None:
        return self._cursor

    @property
    def cursor_row(self) -> Row | None:
        if self._cursor is None:
            return None
        return self._rows[self._cursor]

    @property
    def message(self) -> str:
        return self.workflow.message

    def move_cursor(self, index: int | None) -> None:
        """Point the cursor at a row index, clamped to the visible rows."""
        self._cursor = index
        self._clamp_cursor()

    def expire_message(self, now: float | None = None) -> bool:
        """Clear the notification once it has expired. Returns True if cleared."""
        if not self.workflow.message:
            return False
        now = self._clock() if now is None else now
        if now < self.workflow.message_expires_at:
            return False
        self.workflow.message = ""
        return True

    # User actions

    def dispatch(self, action: Action, text: str = "") -> Effect | None:
        """Route a user action according to the current input mode."""
        mode = self.workflow.mode
        if isinstance(mode, ConfirmingKill):
            return self._dispatch_confirming(mode, action)
        if isinstance(mode, Searching):
            return self._dispatch_searching(action, text)
        return self._dispatch_normal(action)

    def _dispatch_normal(self, action: Action) -> Effect | None:
        view = self.view
        if action is Action.QUIT:
            return Quit()
        if self.error is not None and action in (Action.TOGGLE_SELECTION, Action.INITIATE_KILL):
            # Rows are hidden behind the error panel
            return None
        if action is Action.SWITCH_GROUP:
            view.active_group = (
                Classification.SYSTEM_OWNED
                if view.active_group is Classification.OWNED_BY_CURRENT_USER
                else Classification.OWNED_BY_CURRENT_USER
            )
        elif action is Action.TOGGLE_PORTS_ONLY:
            view.ports_only = not view.ports_only
        elif action is Action.CYCLE_SORT_KEY:
            keys = list(SortKey)
            view.sort_key = keys[(keys.index(view.sort_key) + 1) % len(keys)]
        elif action is Action.TOGGLE_SORT_DIRECTION:
            view.sort_descending = not view.sort_descending
        elif action is Action.TOGGLE_SELECTION:
            row = self.cursor_row
            if row is None:
                return None
            view.selection ^= {row.pid}
        elif action is Action.ENTER_SEARCH:
            self.workflow.mode = Searching(buffer=view.search_text)
            return None
        elif action is Action.INITIATE_KILL:
            self._initiate_kill()
            return None
        else:
            return None
        self._derive()
        return None

    def _dispatch_searching(self, action: Action, text: str) -> Effect | None:
        if action is Action.SEARCH_TEXT_CHANGED:
            self.workflow.mode = Searching(buffer=text)
            self.view.search_text = text
            self._derive()
        elif action in (Action.COMMIT_SEARCH, Action.LEAVE_SEARCH):
            # Typed text stays active as the filter either way
            self.workflow.mode = Normal()
        return None

    def _dispatch_confirming(self, mode: ConfirmingKill, action: Action) -> Effect | None:
        if action is Action.CONFIRM_KILL:
            self.workflow.mode = Normal()
            self._notify(f"Killing {len(mode.targets)} process(es)...")
            logger.debug("Kill confirmed for pids %s", mode.targets)
            return StartKill(mode.targets)
        if action is Action.CANCEL_KILL:
            self.workflow.mode = Normal()
            self._notify("Cancelled.")
        return None

    def _initiate_kill(self) -> None:
        if self.view.selection:
            targets = tuple(sorted(self.view.selection))
        elif self.cursor_row is not None:
            targets = (self.cursor_row.pid,)
        else:
            self._notify("No process selected.")
            return
        self.workflow.mode = ConfirmingKill(targets=targets)

    # Background results

    def apply(self, event: SessionEvent) -> Effect | None:
        """Apply a background result. Honored in every input mode."""
        if isinstance(event, ScanStarted):
            self.workflow.is_loading = True
        elif isinstance(event, ScanCompleted):
            self.snapshot = event.snapshot
            self.error = None
            self.workflow.is_loading = False
            self._derive()
        elif isinstance(event, ScanFailed):
            self.error = event.error
            self.workflow.is_loading = False
        elif isinstance(event, KillCompleted):
            self._finish_kill(event)
            return RequestRefresh()
        return None

    def _finish_kill(self, event: KillCompleted) -> None:
        result = event.result
        if result.first_error is not None:
            self._notify(
                f"Killed {result.succeeded} of {result.attempted} process(es). "
                f"Error: {result.first_error}"
            )
        else:
            self._notify(f"Successfully killed {result.succeeded} process(es)")
        self.view.selection.clear()
        self._derive()

    def _notify(self, message: str) -> None:
        self.workflow.message = message
        self.workflow.message_expires_at = self._clock() + self._message_duration

    def _derive(self) -> None:
        self._rows = derive_rows(self.snapshot, self.view)
        self._clamp_cursor()

    def _clamp_cursor(self) -> None:
        if not self._rows:
            self._cursor = None
        elif self._cursor is None or self._cursor < 0:
            self._cursor = 0
        elif self._cursor >= len(self._rows):
            self._cursor = len(self._rows) - 1
