"""Data models for proctree."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum


class ProcessState(Enum):
    """Coarse process state derived from the kernel's one-letter code."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"
    ZOMBIE = "zombie"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: str) -> "ProcessState":
        """Map a /proc state character to a ProcessState."""
        return _STATE_CODES.get(code, cls.OTHER)


_STATE_CODES = {
    "R": ProcessState.RUNNING,
    "S": ProcessState.SLEEPING,
    "D": ProcessState.SLEEPING,
    "I": ProcessState.SLEEPING,
    "T": ProcessState.STOPPED,
    "Z": ProcessState.ZOMBIE,
}


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable point-in-time record of one process."""

    pid: int
    ppid: int  # 0 means no parent / kernel-owned
    state: ProcessState
    state_code: str  # 'R', 'S', 'Z', 'T', etc.

    @property
    def is_zombie(self) -> bool:
        return self.state is ProcessState.ZOMBIE

    @property
    def is_stopped(self) -> bool:
        return self.state is ProcessState.STOPPED


@dataclass(slots=True, frozen=True)
class QueryResult:
    """
    Result of a list-style tree query.

    An error result always carries an empty pid list, so "could not
    determine" stays distinguishable from "found nothing".
    """

    pids: list[int] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[int]:
        return iter(self.pids)

    def __len__(self) -> int:
        return len(self.pids)

    def __contains__(self, pid: object) -> bool:
        return pid in self.pids

    @classmethod
    def failed(cls, error: str) -> "QueryResult":
        return cls(pids=[], error=error)


@dataclass(slots=True, frozen=True)
class SignalResult:
    """Outcome of delivering one signal to one process."""

    pid: int
    signal: int
    ok: bool
    error: str | None = None
    source_pid: int | None = None  # process whose state prompted the signal


@dataclass(slots=True)
class DispatchReport:
    """Per-target outcomes of a batch signal operation."""

    operation: str
    root: int
    results: list[SignalResult] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    error: str | None = None

    @property
    def signalled(self) -> list[int]:
        """PIDs that accepted the signal."""
        return [r.pid for r in self.results if r.ok]

    @property
    def failed(self) -> list[SignalResult]:
        return [r for r in self.results if not r.ok]


@dataclass(slots=True)
class KillReport(DispatchReport):
    """DispatchReport for kill, including the reconciliation pass."""

    collected: int = 0
    reconciled: list[SignalResult] = field(default_factory=list)
    over_capacity: bool = False

    @property
    def reconciled_pids(self) -> list[int]:
        return [r.pid for r in self.reconciled]
