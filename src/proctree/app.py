"""proctree-top - Textual viewer for one process subtree."""

from enum import Enum
from queue import Empty, Queue

import click
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static
from textual.widgets.data_table import RowDoesNotExist

from proctree.config import MIN_REFRESH_INTERVAL, Settings
from proctree.dispatcher import SignalDispatcher
from proctree.models import DispatchReport, ProcessRecord
from proctree.monitor import TreeMonitor, TreeSnapshot
from proctree.procfs import ProcFS
from proctree.tree import TreeQuery


class SortKey(Enum):
    """Sort keys for the descendant table."""

    PID = "pid"
    PPID = "ppid"
    STATE = "state"


def describe_report(report: DispatchReport) -> str:
    """One-line summary of a dispatch report for notifications."""
    if report.error:
        return f"{report.operation}: {report.error}"
    text = f"{report.operation}: {len(report.signalled)} signalled, {len(report.failed)} failed"
    if report.skipped:
        text += f", {len(report.skipped)} skipped"
    return text


class TreeHeader(Static):
    """Header widget showing the root process and subtree counts."""

    DEFAULT_CSS = """
    TreeHeader {
        height: auto;
        min-height: 3;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, root: int, *args, **kwargs) -> None:
        """Initialize TreeHeader."""
        super().__init__(*args, **kwargs)
        self._root = root
        self._root_record: ProcessRecord | None = None
        self._descendants = 0
        self._zombies = 0
        self._stopped = 0
        self._error: str | None = None

    def on_mount(self) -> None:
        self.update(self.summary_text())

    def update_stats(self, snapshot: TreeSnapshot) -> None:
        """Update the counts from a tree snapshot."""
        self._root_record = snapshot.root_record
        self._descendants = len(snapshot.descendants)
        self._zombies = snapshot.zombie_count
        self._stopped = snapshot.stopped_count
        self._error = snapshot.error
        self.update(self.summary_text())

    def summary_text(self) -> str:
        if self._error:
            return f"Root {self._root}: [red]{self._error}[/red]"
        if self._root_record is None:
            return f"Root {self._root}: [yellow]not running[/yellow]"
        return (
            f"Root {self._root} (PPID {self._root_record.ppid}, {self._root_record.state_code})  "
            f"Descendants: {self._descendants}  "
            f"Stopped: {self._stopped}  "
            f"Zombies: {self._zombies}"
        )


class DescendantTable(Container):
    """Container for the descendant data table."""

    DEFAULT_CSS = """
    DescendantTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize DescendantTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()
        self._sort_key: SortKey = SortKey.PID

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the descendant table."""
        yield DataTable(id="descendant-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#descendant-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("S", key="state", width=3)
        table.add_column("State", key="state_name")

    def update_records(self, records: list[ProcessRecord]) -> None:
        """
        Update the table with new data.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        """
        table = self.query_one("#descendant-table", DataTable)
        ordered = self._sort_records(records)
        new_pids = {record.pid for record in ordered}

        for pid in self._current_pids - new_pids:
            try:
                table.remove_row(str(pid))
            except RowDoesNotExist:
                pass  # Row may not exist

        for record in ordered:
            row_key = str(record.pid)
            if record.pid in self._current_pids:
                table.update_cell(row_key, "ppid", str(record.ppid))
                table.update_cell(row_key, "state", record.state_code)
                table.update_cell(row_key, "state_name", record.state.value)
            else:
                table.add_row(
                    str(record.pid),
                    str(record.ppid),
                    record.state_code,
                    record.state.value,
                    key=row_key,
                )

        self._current_pids = new_pids

    def _sort_records(self, records: list[ProcessRecord]) -> list[ProcessRecord]:
        key_func = {
            SortKey.PID: lambda r: r.pid,
            SortKey.PPID: lambda r: (r.ppid, r.pid),
            SortKey.STATE: lambda r: (r.state_code, r.pid),
        }
        return sorted(records, key=key_func[self._sort_key])


class ProctreeApp(App):
    """Interactive view of the descendants of one process."""

    TITLE = "proctree"
    SUB_TITLE = "Process Subtree Control"

    CSS = """
    Screen {
        layout: vertical;
    }

    #tree-header {
        dock: top;
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("s", "stop_tree", "Stop"),
        ("c", "continue_tree", "Continue"),
        ("k", "kill_tree", "Kill"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, root: int, settings: Settings | None = None) -> None:
        """Initialize the ProctreeApp."""
        super().__init__()
        self._settings = settings or Settings()
        self._root = root
        query = TreeQuery(ProcFS(self._settings.proc_root), max_hops=self._settings.max_hops)
        self._dispatcher = SignalDispatcher(query, kill_capacity=self._settings.kill_capacity)
        self._update_queue: Queue[TreeSnapshot] = Queue()
        self._monitor = TreeMonitor(
            root,
            self._update_queue,
            query=query,
            poll_rate=self._settings.refresh_interval,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield TreeHeader(self._root, id="tree-header")
        yield DescendantTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the tree monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: TreeSnapshot) -> None:
        self.query_one("#tree-header", TreeHeader).update_stats(snapshot)
        self.query_one(DescendantTable).update_records(snapshot.descendants)

    def action_refresh(self) -> None:
        """Re-read the subtree immediately."""
        self._update_ui(self._monitor.collect())

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(DescendantTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")
        self.action_refresh()

    def action_stop_tree(self) -> None:
        self._notify_report(self._dispatcher.stop(self._root))

    def action_continue_tree(self) -> None:
        self._notify_report(self._dispatcher.resume(self._root))

    def action_kill_tree(self) -> None:
        report = self._dispatcher.kill(self._root)
        self._notify_report(report)
        if report.reconciled:
            self.notify(f"{len(report.reconciled)} caught on second pass", severity="warning")

    def _notify_report(self, report: DispatchReport) -> None:
        severity = "error" if report.error else ("warning" if report.failed else "information")
        self.notify(describe_report(report), severity=severity)
        self.action_refresh()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


@click.command()
@click.argument("root", type=click.IntRange(min=1))
@click.option("--interval", type=float, default=None, help="Refresh interval in seconds")
def main(root: int, interval: float | None) -> None:
    """Watch and control the subtree rooted at ROOT."""
    settings = Settings.from_env()
    if interval is not None:
        settings.refresh_interval = max(MIN_REFRESH_INTERVAL, interval)
    ProctreeApp(root, settings).run()


if __name__ == "__main__":
    main()
