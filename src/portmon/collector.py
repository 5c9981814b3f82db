"""Process and connection collection for portmon."""

import logging
import os
import time
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

import psutil

from portmon.models import (
    AppType,
    Classification,
    CollectionFailed,
    Connection,
    ConnectionState,
    ProcessRecord,
    ProcessSnapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors psutil raises for a single unreadable process attribute
_FIELD_ERRORS = (psutil.Error, OSError)

_GUI_ROOT = "/Applications"
_GUI_SUFFIX = ".app"
_DEV_APPS_PREFIX = "apps"
_DEV_COMMAND_MARKERS = (
    " go run ",
    "npm run",
    "yarn ",
    "pnpm ",
    "cargo run",
    "python -m",
    "python3 -m",
    "manage.py runserver",
    "uvicorn",
    "gunicorn",
    "flask run",
)


def current_username() -> str:
    """
    Return the user name this process runs as.

    Read through psutil so the format matches the owners of other processes.
    """
    try:
        return psutil.Process().username()
    except _FIELD_ERRORS as exc:
        raise CollectionFailed(f"failed to get current user: {exc}") from exc


def classify_app_type(name: str, working_directory: str, command_line: str) -> AppType:
    """Label a process as GUI app, dev tool or plain binary from its path and command."""
    if working_directory.startswith(_GUI_ROOT) or name.endswith(_GUI_SUFFIX):
        return AppType.GUI_APP
    # Pad so markers anchored on spaces also match at the ends
    padded = f" {command_line} "
    if any(marker in padded for marker in _DEV_COMMAND_MARKERS):
        return AppType.DEV_TOOL
    if os.path.basename(working_directory).startswith(_DEV_APPS_PREFIX):
        return AppType.DEV_TOOL
    return AppType.BINARY


def collect_connections() -> dict[int, list[Connection]]:
    """
    Map each pid to the local ports it holds.

    Covers IPv4/IPv6 over TCP and UDP. Port data is an enrichment, so a failure
    here yields an empty mapping instead of an error.
    """
    mapping: dict[int, list[Connection]] = {}
    try:
        connections = psutil.net_connections(kind="inet")
    except _FIELD_ERRORS as exc:
        logger.warning("Connection enumeration failed, continuing without ports: %s", exc)
        return mapping

    for conn in connections:
        if conn.pid is None or not conn.laddr:
            continue
        state = (
            ConnectionState.LISTENING
            if conn.status == psutil.CONN_LISTEN
            else ConnectionState.OTHER
        )
        mapping.setdefault(conn.pid, []).append(Connection(port=conn.laddr.port, state=state))
    return mapping


def collect(current_user: str | None = None) -> ProcessSnapshot:
    """
    Collect a snapshot of every live process.

    Args:
        current_user: Owner name treated as the invoking user. Resolved from
            this process when omitted.

    Raises:
        CollectionFailed: If the process list cannot be enumerated at all.
    """
    started = time.perf_counter()
    if current_user is None:
        current_user = current_username()

    try:
        processes = list(psutil.process_iter())
    except _FIELD_ERRORS as exc:
        raise CollectionFailed(f"failed to list processes: {exc}") from exc

    connections = collect_connections()

    records: list[ProcessRecord] = []
    for proc in processes:
        record = _read_record(proc, current_user, connections)
        if record is not None:
            records.append(record)

    logger.debug(
        "Collected %d of %d processes in %.3fs",
        len(records),
        len(processes),
        time.perf_counter() - started,
    )
    return ProcessSnapshot(records=tuple(records), captured_at=datetime.now())


def _read_record(
    proc: psutil.Process,
    current_user: str,
    connections: dict[int, list[Connection]],
) -> ProcessRecord | None:
    """Read one process, or return None if its name is unreadable."""
    with proc.oneshot():
        try:
            name = proc.name()
        except _FIELD_ERRORS:
            # Process most likely exited mid-scan
            return None

        owner = _read(proc.username, "unknown")
        working_directory = _read(proc.cwd, "")
        command_line = " ".join(_read(proc.cmdline, []))
        cpu_percent = _read(lambda: proc.cpu_percent(interval=None), 0.0)
        memory_bytes = _read(lambda: proc.memory_info().rss, 0)

    classification = (
        Classification.OWNED_BY_CURRENT_USER
        if owner == current_user
        else Classification.SYSTEM_OWNED
    )

    return ProcessRecord(
        pid=proc.pid,
        name=name,
        owner=owner,
        working_directory=working_directory,
        command_line=command_line,
        classification=classification,
        app_type=classify_app_type(name, working_directory, command_line),
        connections=tuple(connections.get(proc.pid, ())),
        cpu_percent=float(cpu_percent or 0.0),
        memory_bytes=int(memory_bytes or 0),
    )


def _read(getter: Callable[[], T], default: T) -> T:
    try:
        value = getter()
    except _FIELD_ERRORS:
        return default
    return default if value is None else value
