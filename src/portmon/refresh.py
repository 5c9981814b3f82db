"""Background refresh loop for portmon."""

import logging
import threading
from collections.abc import Callable
from queue import Queue

from portmon.collector import collect
from portmon.events import ScanCompleted, ScanFailed, ScanStarted, SessionEvent
from portmon.models import CollectionFailed, ProcessSnapshot

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.1


class RefreshLoop:
    """
    Runs the snapshot collector periodically and on demand.

    Runs in a separate daemon thread and pushes results to a thread-safe Queue.
    A single thread guarantees at most one collection in flight; refresh requests
    made during a collection are coalesced into one follow-up scan.
    """

    def __init__(
        self,
        event_queue: Queue[SessionEvent],
        collect_snapshot: Callable[[], ProcessSnapshot] = collect,
        interval: float = 3.0,
    ) -> None:
        """
        Initialize the RefreshLoop.

        Args:
            event_queue: Thread-safe queue to push scan events to.
            collect_snapshot: Callable producing one snapshot. Defaults to the
                psutil collector.
            interval: Seconds between scheduled scans. Default 3.0s.
        """
        self._queue = event_queue
        self._collect = collect_snapshot
        self._interval = max(MIN_INTERVAL, interval)
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        """Get the current refresh interval."""
        return self._interval

    @property
    def is_running(self) -> bool:
        """Check if the refresh thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the refresh thread. The first scan runs immediately."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._wake_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="RefreshLoop",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the refresh thread.

        A scan in progress is not interrupted; the thread exits once it finishes.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def request_refresh(self) -> None:
        """Ask for a scan now instead of waiting for the next tick."""
        self._wake_event.set()

    def _run(self) -> None:
        """Main loop running in the background thread."""
        while not self._stop_event.is_set():
            self._scan_once()

            # Wait for the interval, an on-demand request, or stop
            self._wake_event.wait(timeout=self._interval)
            self._wake_event.clear()

    def _scan_once(self) -> None:
        self._queue.put(ScanStarted())
        try:
            snapshot = self._collect()
        except CollectionFailed as exc:
            logger.warning("Collection failed: %s", exc)
            self._queue.put(ScanFailed(exc))
        except Exception as exc:
            logger.exception("Unexpected error during collection")
            self._queue.put(ScanFailed(CollectionFailed(str(exc))))
        else:
            self._queue.put(ScanCompleted(snapshot))
