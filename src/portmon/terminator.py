"""Process termination for portmon."""

import logging
import threading
from collections.abc import Iterable
from queue import Queue

import psutil

from portmon.events import KillCompleted, SessionEvent
from portmon.models import KillResult

logger = logging.getLogger(__name__)


def terminate(pids: Iterable[int]) -> KillResult:
    """
    Kill each pid independently.

    A failure for one pid never stops the others. Only the first error is kept,
    but the success count covers every pid. A pid that no longer exists counts
    as a failure.
    """
    attempted = 0
    succeeded = 0
    first_error: Exception | None = None

    for pid in pids:
        attempted += 1
        try:
            psutil.Process(pid).kill()
        except (psutil.Error, OSError) as exc:
            logger.warning("Failed to kill pid %d: %s", pid, exc)
            if first_error is None:
                first_error = exc
            continue
        logger.debug("Killed pid %d", pid)
        succeeded += 1

    return KillResult(attempted=attempted, succeeded=succeeded, first_error=first_error)


def start_termination(pids: Iterable[int], event_queue: Queue[SessionEvent]) -> threading.Thread:
    """Run terminate() on a daemon thread and post a KillCompleted event when done."""
    targets = tuple(pids)

    def _run() -> None:
        event_queue.put(KillCompleted(terminate(targets)))

    thread = threading.Thread(target=_run, daemon=True, name="ProcessTerminator")
    thread.start()
    return thread
