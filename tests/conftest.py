"""Shared test fixtures."""

from datetime import datetime

import pytest

from portmon.models import (
    AppType,
    Classification,
    Connection,
    ConnectionState,
    ProcessRecord,
    ProcessSnapshot,
)


def build_record(pid: int, ports: tuple[int, ...] = (), **overrides) -> ProcessRecord:
    fields = {
        "pid": pid,
        "name": f"proc{pid}",
        "owner": "alice",
        "working_directory": "/home/alice",
        "command_line": f"/usr/bin/proc{pid}",
        "classification": Classification.OWNED_BY_CURRENT_USER,
        "app_type": AppType.BINARY,
        "connections": tuple(Connection(port=p, state=ConnectionState.LISTENING) for p in ports),
        "cpu_percent": 0.0,
        "memory_bytes": 0,
    }
    fields.update(overrides)
    return ProcessRecord(**fields)


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def make_snapshot():
    def _make(*records: ProcessRecord) -> ProcessSnapshot:
        return ProcessSnapshot(records=tuple(records), captured_at=datetime.now())

    return _make


@pytest.fixture
def two_user_processes(make_snapshot) -> ProcessSnapshot:
    """pid 100 without ports, pid 200 listening on 8080."""
    return make_snapshot(build_record(100), build_record(200, ports=(8080,)))
