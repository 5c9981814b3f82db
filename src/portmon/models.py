"""Data models for portmon."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CollectionFailed(Exception):
    """Raised when the process list itself cannot be enumerated."""


class Classification(Enum):
    """Ownership group of a process."""

    OWNED_BY_CURRENT_USER = "user"
    SYSTEM_OWNED = "system"


class AppType(Enum):
    """Best-effort label for what kind of program a process is."""

    GUI_APP = "GUI App"
    DEV_TOOL = "Dev Tool"
    BINARY = "Binary"
    UNKNOWN = "Unknown"


class ConnectionState(Enum):
    """State of a socket bound to a process."""

    LISTENING = "L"
    OTHER = "E"


@dataclass(slots=True, frozen=True)
class Connection:
    """A local port held by a process."""

    port: int  # 0 - 65535
    state: ConnectionState


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable view of one process at snapshot time."""

    pid: int
    name: str
    owner: str
    working_directory: str
    command_line: str
    classification: Classification
    app_type: AppType
    connections: tuple[Connection, ...]
    cpu_percent: float
    memory_bytes: int  # RSS


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """All process records produced by one collector run."""

    records: tuple[ProcessRecord, ...]
    captured_at: datetime

    def find(self, pid: int) -> ProcessRecord | None:
        """Return the record for pid, or None if it is not in the snapshot."""
        for record in self.records:
            if record.pid == pid:
                return record
        return None


@dataclass(slots=True, frozen=True)
class KillResult:
    """Aggregate outcome of terminating a set of processes."""

    attempted: int
    succeeded: int
    first_error: Exception | None = None

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded
