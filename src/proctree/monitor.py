"""Background refresher feeding the proctree viewer."""

import logging
import threading
from dataclasses import dataclass, field
from queue import Queue

from proctree.config import MIN_REFRESH_INTERVAL
from proctree.models import ProcessRecord
from proctree.procfs import ProcfsUnavailableError
from proctree.tree import TreeQuery

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TreeSnapshot:
    """Descendants of a root process as seen by one refresh."""

    root: int
    root_record: ProcessRecord | None
    descendants: list[ProcessRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def zombie_count(self) -> int:
        return sum(1 for r in self.descendants if r.is_zombie)

    @property
    def stopped_count(self) -> int:
        return sum(1 for r in self.descendants if r.is_stopped)


class TreeMonitor:
    """
    Re-reads the subtree of one root process on an interval.

    Runs in a separate daemon thread and pushes updates to a thread-safe Queue.
    Every refresh is an independent query; nothing is carried over.
    """

    def __init__(
        self,
        root: int,
        update_queue: Queue[TreeSnapshot],
        query: TreeQuery | None = None,
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the TreeMonitor.

        Args:
            root: PID whose subtree is watched.
            update_queue: Thread-safe queue to push updates to.
            query: Tree query engine. Default reads /proc.
            poll_rate: How often to refresh (in seconds). Default 2.0s.
        """
        self._root = root
        self._queue = update_queue
        self._query = query if query is not None else TreeQuery()
        self._poll_rate = max(MIN_REFRESH_INTERVAL, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def root(self) -> int:
        return self._root

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_REFRESH_INTERVAL, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="TreeMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.collect())
            except Exception:
                # Keep refreshing; the next pass reads the table from scratch
                logger.exception("Refresh of tree %d failed", self._root)

            self._stop_event.wait(timeout=self._poll_rate)

    def collect(self) -> TreeSnapshot:
        """Read the current subtree of the root."""
        snapshot = TreeSnapshot(root=self._root, root_record=self._query.record(self._root))
        try:
            snapshot.descendants = self._query.descendant_records(self._root)
        except ProcfsUnavailableError as e:
            logger.error("%s", e)
            snapshot.error = str(e)
        return snapshot
