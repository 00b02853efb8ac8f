"""Process record lookup and PID scanning over the /proc filesystem."""

import logging
import os
from collections import defaultdict
from collections.abc import Iterator
from pathlib import Path

from proctree.models import ProcessRecord, ProcessState

logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT = "/proc"


class ProctreeError(Exception):
    """Base error for proctree."""


class ProcfsUnavailableError(ProctreeError):
    """The process-information filesystem could not be listed."""


def parse_stat(line: str) -> ProcessRecord | None:
    """
    Parse the contents of a /proc/<pid>/stat file.

    Format: ``pid (comm) state ppid ...``. The command name may contain
    spaces and parentheses, so it is skipped by locating the last closing
    parenthesis rather than by splitting on whitespace.

    Returns:
        A ProcessRecord, or None if the line is malformed.
    """
    open_paren = line.find("(")
    close_paren = line.rfind(")")
    if open_paren < 0 or close_paren < open_paren:
        return None

    rest = line[close_paren + 1:].split()
    if len(rest) < 2:
        return None

    state_code = rest[0]
    if len(state_code) != 1:
        return None

    try:
        pid = int(line[:open_paren].strip())
        ppid = int(rest[1])
    except ValueError:
        return None

    if pid <= 0 or ppid < 0:
        return None

    return ProcessRecord(
        pid=pid,
        ppid=ppid,
        state=ProcessState.from_code(state_code),
        state_code=state_code,
    )


class Snapshot:
    """
    Records of every process visible during a single scan.

    Records are read one after another, so nothing guarantees that they are
    mutually consistent; processes may start or exit between reads.
    """

    def __init__(self, records: dict[int, ProcessRecord]) -> None:
        self._records = records
        self._children: dict[int, list[int]] = defaultdict(list)
        for pid, record in records.items():
            self._children[record.ppid].append(pid)

    def __contains__(self, pid: object) -> bool:
        return pid in self._records

    def __iter__(self) -> Iterator[ProcessRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def get(self, pid: int) -> ProcessRecord | None:
        return self._records.get(pid)

    def children_of(self, pid: int) -> list[int]:
        """PIDs whose recorded parent is ``pid``, in scan order."""
        return list(self._children.get(pid, ()))


class ProcFS:
    """
    Reads process records from a procfs mount.

    The root is configurable so tests can point it at a synthetic tree.
    """

    def __init__(self, root: str | os.PathLike[str] = DEFAULT_PROC_ROOT) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def lookup(self, pid: int) -> ProcessRecord | None:
        """
        Read the record for ``pid``.

        Returns None when the process does not exist, is not readable, or its
        stat file has an unexpected format. Callers treat all of these as
        "not part of any tree".
        """
        if pid <= 0:
            return None
        try:
            raw = (self._root / str(pid) / "stat").read_bytes()
        except OSError:
            return None

        # The command name is arbitrary bytes; only the fields around it matter
        content = raw.decode("utf-8", errors="replace")
        record = parse_stat(content)
        if record is None or record.pid != pid:
            return None
        return record

    def scan_pids(self) -> list[int]:
        """
        List the numeric entries of the procfs root in directory order.

        Raises:
            ProcfsUnavailableError: If the root cannot be listed.
        """
        try:
            names = os.listdir(self._root)
        except OSError as e:
            raise ProcfsUnavailableError(
                f"Cannot access {self._root} directory: {e.strerror or e}"
            ) from e
        return [int(name) for name in names if name.isdigit()]

    def records(self) -> Iterator[ProcessRecord]:
        """Yield the record of every readable process, skipping absent ones."""
        for pid in self.scan_pids():
            record = self.lookup(pid)
            if record is not None:
                yield record

    def snapshot(self) -> Snapshot:
        """
        Take one pass over the procfs root.

        Raises:
            ProcfsUnavailableError: If the root cannot be listed.
        """
        records = {record.pid: record for record in self.records()}
        logger.debug("Scanned %d processes under %s", len(records), self._root)
        return Snapshot(records)
