"""Results posted by background work to the session event queue."""

from dataclasses import dataclass

from portmon.models import CollectionFailed, KillResult, ProcessSnapshot


@dataclass(slots=True, frozen=True)
class ScanStarted:
    """A collector run has begun."""


@dataclass(slots=True, frozen=True)
class ScanCompleted:
    snapshot: ProcessSnapshot


@dataclass(slots=True, frozen=True)
class ScanFailed:
    error: CollectionFailed


@dataclass(slots=True, frozen=True)
class KillCompleted:
    result: KillResult


SessionEvent = ScanStarted | ScanCompleted | ScanFailed | KillCompleted
