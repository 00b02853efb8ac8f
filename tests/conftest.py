"""Shared test fixtures."""

import shutil
from pathlib import Path

import pytest

from proctree.models import SignalResult
from proctree.procfs import ProcFS
from proctree.tree import TreeQuery


class FakeProc:
    """Synthetic /proc tree written under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        # Non-numeric entries that a real /proc also carries
        (self.root / "self").mkdir(exist_ok=True)
        (self.root / "meminfo").write_text("MemTotal: 1 kB\n")

    def add(self, pid: int, ppid: int, state: str = "S", name: str | None = None) -> None:
        comm = name if name is not None else f"proc{pid}"
        self.write_stat(pid, f"{pid} ({comm}) {state} {ppid} {pid} {pid} 0 -1 4194560 0 0 0 0\n")

    def write_stat(self, pid: int, content: str) -> None:
        proc_dir = self.root / str(pid)
        proc_dir.mkdir(exist_ok=True)
        (proc_dir / "stat").write_text(content)

    def set_state(self, pid: int, state: str) -> None:
        record = self.procfs.lookup(pid)
        self.add(pid, record.ppid, state)

    def remove(self, pid: int) -> None:
        shutil.rmtree(self.root / str(pid), ignore_errors=True)

    def exists(self, pid: int) -> bool:
        return (self.root / str(pid) / "stat").exists()

    @property
    def procfs(self) -> ProcFS:
        return ProcFS(self.root)


class RecordingSender:
    """
    Fake signal sender that records calls instead of signalling.

    ``on_signal`` hooks let tests mutate the fake tree when a signal lands,
    to imitate processes dying or forking between scans.
    """

    def __init__(self, fake: FakeProc | None = None, fail: dict[int, str] | None = None) -> None:
        self.fake = fake
        self.fail = fail or {}
        self.calls: list[tuple[int, int]] = []
        self.on_signal = None

    def __call__(self, pid: int, sig: int) -> SignalResult:
        self.calls.append((pid, sig))
        if pid in self.fail:
            return SignalResult(pid, sig, ok=False, error=self.fail[pid])
        if self.fake is not None and not self.fake.exists(pid):
            return SignalResult(pid, sig, ok=False, error="process no longer exists")
        if self.on_signal is not None:
            self.on_signal(pid, sig)
        return SignalResult(pid, sig, ok=True)

    def pids(self, sig: int | None = None) -> list[int]:
        return [pid for pid, s in self.calls if sig is None or s == sig]


@pytest.fixture
def fake_proc(tmp_path) -> FakeProc:
    """Empty synthetic procfs."""
    return FakeProc(tmp_path / "proc")


@pytest.fixture
def chain_proc(fake_proc) -> FakeProc:
    """
    Linear chain with a zombie leaf.

    1 -> 2 -> 3 -> 4(Z)
    """
    fake_proc.add(1, 0, "S")
    fake_proc.add(2, 1, "R")
    fake_proc.add(3, 2, "R")
    fake_proc.add(4, 3, "Z")
    return fake_proc


@pytest.fixture
def family_proc(fake_proc) -> FakeProc:
    """
    Wider tree used by relationship and dispatch tests.

    1 ─┬─ 10 ─┬─ 100 ── 1000 (Z)
       │      ├─ 101 (T)
       │      ├─ 11 ─┬─ 110 (Z)
       │      │      └─ 111 (T)
       │      └─ 12 (Z)
       └─ 20
    """
    fake_proc.add(1, 0, "S", name="init")
    fake_proc.add(10, 1, "S", name="svc")
    fake_proc.add(100, 10, "S", name="worker (a)")
    fake_proc.add(1000, 100, "Z", name="child")
    fake_proc.add(101, 10, "T", name="worker b")
    fake_proc.add(11, 10, "S")
    fake_proc.add(110, 11, "Z")
    fake_proc.add(111, 11, "T")
    fake_proc.add(12, 10, "Z")
    fake_proc.add(20, 1, "S")
    return fake_proc


@pytest.fixture
def sender(fake_proc) -> RecordingSender:
    """Recording sender bound to the synthetic procfs."""
    return RecordingSender(fake_proc)


@pytest.fixture
def chain_query(chain_proc) -> TreeQuery:
    return TreeQuery(chain_proc.procfs)


@pytest.fixture
def family_query(family_proc) -> TreeQuery:
    return TreeQuery(family_proc.procfs)
