"""portmon - Main Textual application."""

import logging
from collections.abc import Callable
from queue import Empty, Queue

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Input, Static

from portmon.collector import collect
from portmon.config import Settings
from portmon.events import SessionEvent
from portmon.models import Classification, ProcessRecord, ProcessSnapshot
from portmon.refresh import RefreshLoop
from portmon.session import (
    Action,
    ConfirmingKill,
    Effect,
    Quit,
    RequestRefresh,
    Row,
    Searching,
    Session,
    StartKill,
)
from portmon.terminator import start_termination

logger = logging.getLogger(__name__)

KillStarter = Callable[[tuple[int, ...], Queue], object]


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ["KB", "MB", "GB", "TB", "PB"]:
        value = value / 1024
        if value < 1024:
            break
    return f"{value:.1f} {unit}"


def format_status(session: Session) -> str:
    """Build the status line: confirmation prompt, notification, or sort/filter state."""
    mode = session.mode
    if isinstance(mode, ConfirmingKill):
        return f"Are you sure you want to kill {len(mode.targets)} process(es)? (y/n)"
    if session.message:
        return session.message

    view = session.view
    order = "DESC" if view.sort_descending else "ASC"
    scope = "Ports Only" if view.ports_only else "All"
    status = f"Sort: {view.sort_key.value} ({order}) | Filter: {scope}"
    if isinstance(mode, Searching):
        status += " | Searching..."
    elif view.search_text:
        status += f" | Search: {view.search_text} (press / to edit)"
    if session.workflow.is_loading:
        status = f"Loading processes...  {status}"
    return status


def format_details(record: ProcessRecord, ports: str) -> str:
    """Details panel text for the process under the cursor."""
    return (
        f"Path: {record.working_directory}\n"
        f"Command: {record.command_line}\n"
        f"Full Ports: {ports}\n"
        f"Resources: CPU {record.cpu_percent:.1f}%, Mem {format_bytes(record.memory_bytes)}"
    )


class GroupTabs(Static):
    """Tab strip showing which ownership group is active."""

    DEFAULT_CSS = """
    GroupTabs {
        height: 1;
    }
    """

    def show_group(self, group: Classification) -> None:
        """Highlight the active group."""
        labels = [
            (Classification.OWNED_BY_CURRENT_USER, " User Processes "),
            (Classification.SYSTEM_OWNED, " System Processes "),
        ]
        parts: list[tuple[str, str] | str] = []
        for value, label in labels:
            parts.append((label, "bold reverse" if value is group else "dim"))
            parts.append(" ")
        self.update(Text.assemble(*parts))


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("X", key="selected", width=2)
        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=20)
        table.add_column("Ports", key="ports")
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("Mem", key="mem", width=10)
        table.add_column("Type", key="type", width=9)

    def show_rows(self, rows: list[Row], cursor: int | None) -> None:
        """
        Replace the table contents with freshly derived rows.

        Rows are rebuilt in full because order can change on every derivation.
        """
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for row in rows:
            record = row.record
            table.add_row(
                "x" if row.selected else " ",
                str(record.pid),
                Text(record.name),
                Text(row.ports),
                f"{record.cpu_percent:.1f}%",
                format_bytes(record.memory_bytes),
                record.app_type.value,
                key=str(record.pid),
            )
        if cursor is not None:
            table.move_cursor(row=cursor)


class PortmonApp(App):
    """Main portmon application."""

    TITLE = "portmon"
    SUB_TITLE = "Process & Port Monitor"
    AUTO_FOCUS = "#process-table"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        height: 1;
        color: $text-muted;
    }

    #search {
        display: none;
    }

    #error-panel {
        display: none;
        height: 1fr;
        color: $error;
        padding: 1;
    }

    #details {
        height: auto;
        min-height: 4;
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("q", "request_quit", "Quit"),
        Binding("tab", "switch_group", "View", priority=True),
        ("space", "toggle_selection", "Select"),
        ("k", "initiate_kill", "Kill"),
        ("f", "toggle_ports_only", "Filter Ports"),
        ("s", "cycle_sort_key", "Sort Col"),
        ("o", "toggle_sort_direction", "Sort Order"),
        ("slash", "search", "Search"),
        Binding("y", "confirm_kill", "Confirm", show=False),
        Binding("n", "cancel_kill", "Cancel", show=False),
        Binding("escape", "cancel", "Cancel", show=False, priority=True),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        collect_snapshot: Callable[[], ProcessSnapshot] = collect,
        kill_starter: KillStarter = start_termination,
    ) -> None:
        """Initialize the PortmonApp."""
        super().__init__()
        self._settings = settings or Settings()
        self._event_queue: Queue[SessionEvent] = Queue()
        self._refresh = RefreshLoop(
            self._event_queue,
            collect_snapshot=collect_snapshot,
            interval=self._settings.refresh_interval,
        )
        self._kill_starter = kill_starter
        self.session = Session(
            view=self._settings.initial_view(),
            message_duration=self._settings.message_duration,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield GroupTabs(id="tabs")
        yield Static(id="status")
        yield Input(placeholder="Search name or port...", id="search")
        yield ProcessTable()
        yield Static(id="error-panel")
        yield Static(id="details")
        yield Footer()

    def on_mount(self) -> None:
        """Start the refresh loop when the app is mounted."""
        self._render_session()
        self._refresh.start()
        # Set up a timer to drain background results
        self.set_interval(self._settings.drain_interval, self._check_for_updates)

    def on_unmount(self) -> None:
        self._refresh.stop(timeout=1.0)

    def _check_for_updates(self) -> None:
        """Apply queued background results in arrival order and expire notifications."""
        changed = False
        while True:
            try:
                event = self._event_queue.get_nowait()
            except Empty:
                break
            self._run_effect(self.session.apply(event))
            changed = True

        if self.session.expire_message():
            changed = True
        if changed:
            self._render_session()

    def _dispatch(self, action: Action, text: str = "") -> None:
        """Send a user action to the session and redraw."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count:
            self.session.move_cursor(table.cursor_row)
        self._run_effect(self.session.dispatch(action, text))
        self._render_session()

    def _run_effect(self, effect: Effect | None) -> None:
        if isinstance(effect, Quit):
            self.action_quit()
        elif isinstance(effect, StartKill):
            logger.debug("Starting termination of %d process(es)", len(effect.targets))
            self._kill_starter(effect.targets, self._event_queue)
        elif isinstance(effect, RequestRefresh):
            self._refresh.request_refresh()

    def _render_session(self) -> None:
        """Push session state into the widgets."""
        session = self.session
        self.query_one("#tabs", GroupTabs).show_group(session.view.active_group)
        self.query_one("#status", Static).update(Text(format_status(session)))

        search = self.query_one("#search", Input)
        table = self.query_one("#process-table", DataTable)
        searching = isinstance(session.mode, Searching)
        if searching and not search.display:
            search.value = session.view.search_text
            search.display = True
            search.focus()
        elif not searching and search.display:
            search.display = False
            table.focus()

        error_panel = self.query_one("#error-panel", Static)
        process_table = self.query_one(ProcessTable)
        details = self.query_one("#details", Static)
        if session.error is not None:
            error_panel.update(Text(f"Error: {session.error}"))
            error_panel.display = True
            process_table.display = False
            details.display = False
            return

        error_panel.display = False
        process_table.display = True
        details.display = True
        process_table.show_rows(session.rows, session.cursor)
        self._render_details()

    def _render_details(self) -> None:
        row = self.session.cursor_row
        text = format_details(row.record, row.ports) if row is not None else ""
        self.query_one("#details", Static).update(Text(text))

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        """Track the cursor so selection and details follow the highlighted row."""
        self.session.move_cursor(event.cursor_row)
        self._render_details()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            self._dispatch(Action.SEARCH_TEXT_CHANGED, event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search":
            self._dispatch(Action.COMMIT_SEARCH)

    def action_request_quit(self) -> None:
        self._dispatch(Action.QUIT)

    def action_switch_group(self) -> None:
        self._dispatch(Action.SWITCH_GROUP)

    def action_toggle_selection(self) -> None:
        self._dispatch(Action.TOGGLE_SELECTION)

    def action_initiate_kill(self) -> None:
        self._dispatch(Action.INITIATE_KILL)

    def action_toggle_ports_only(self) -> None:
        self._dispatch(Action.TOGGLE_PORTS_ONLY)

    def action_cycle_sort_key(self) -> None:
        self._dispatch(Action.CYCLE_SORT_KEY)

    def action_toggle_sort_direction(self) -> None:
        self._dispatch(Action.TOGGLE_SORT_DIRECTION)

    def action_search(self) -> None:
        self._dispatch(Action.ENTER_SEARCH)

    def action_confirm_kill(self) -> None:
        self._dispatch(Action.CONFIRM_KILL)

    def action_cancel_kill(self) -> None:
        self._dispatch(Action.CANCEL_KILL)

    def action_cancel(self) -> None:
        """Escape: cancel a pending kill or leave the search box."""
        if isinstance(self.session.mode, ConfirmingKill):
            self._dispatch(Action.CANCEL_KILL)
        else:
            self._dispatch(Action.LEAVE_SEARCH)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._refresh.stop(timeout=1.0)
        self.exit()
