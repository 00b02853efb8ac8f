"""Signal delivery across the descendants of a process."""

import logging
import signal
from collections.abc import Callable
from dataclasses import replace
from typing import TypeVar

import psutil

from proctree.models import DispatchReport, KillReport, SignalResult
from proctree.procfs import ProcfsUnavailableError
from proctree.tree import TreeQuery

logger = logging.getLogger(__name__)

DEFAULT_KILL_CAPACITY = 1024

SignalSender = Callable[[int, int], SignalResult]
ReportT = TypeVar("ReportT", bound=DispatchReport)


def send_signal(pid: int, sig: int) -> SignalResult:
    """
    Send ``sig`` to ``pid`` and report the outcome instead of raising.

    Handles NoSuchProcess, ZombieProcess and AccessDenied as ordinary
    per-process failures.
    """
    try:
        psutil.Process(pid).send_signal(sig)
    except psutil.NoSuchProcess as e:
        return SignalResult(pid, sig, ok=False, error=e.msg or "no such process")
    except psutil.AccessDenied as e:
        return SignalResult(pid, sig, ok=False, error=e.msg or "permission denied")
    except (OSError, ValueError) as e:
        return SignalResult(pid, sig, ok=False, error=str(e))
    return SignalResult(pid, sig, ok=True)


class SignalDispatcher:
    """
    Applies SIGSTOP, SIGCONT and SIGKILL to every descendant of a process.

    Each operation re-reads the process table. A failure to signal one
    process is recorded and the batch moves on to the next target.
    """

    def __init__(
        self,
        query: TreeQuery | None = None,
        sender: SignalSender | None = None,
        kill_capacity: int = DEFAULT_KILL_CAPACITY,
    ) -> None:
        """
        Initialize the SignalDispatcher.

        Args:
            query: Tree query engine used to find targets.
            sender: Callable delivering one signal. Default uses psutil.
            kill_capacity: Descendant count above which kill() warns that the
                first pass may not cover the whole tree.
        """
        self._query = query if query is not None else TreeQuery()
        self._send = sender if sender is not None else send_signal
        self._kill_capacity = kill_capacity

    @property
    def query(self) -> TreeQuery:
        return self._query

    def stop(self, pid: int) -> DispatchReport:
        """Send SIGSTOP to every descendant of ``pid``."""
        report = DispatchReport(operation="stop", root=pid)
        try:
            targets = self._query.descendant_records(pid)
        except ProcfsUnavailableError as e:
            return self._abort(report, e)

        for record in targets:
            report.results.append(self._deliver(record.pid, signal.SIGSTOP, "stop"))

        self._summarize(report)
        return report

    def resume(self, pid: int) -> DispatchReport:
        """Send SIGCONT to every descendant of ``pid`` that is currently stopped."""
        report = DispatchReport(operation="continue", root=pid)
        try:
            targets = self._query.descendant_records(pid)
        except ProcfsUnavailableError as e:
            return self._abort(report, e)

        for record in targets:
            if not record.is_stopped:
                logger.debug("Skipping %d in state %s", record.pid, record.state_code)
                report.skipped.append(record.pid)
                continue
            report.results.append(self._deliver(record.pid, signal.SIGCONT, "continue"))

        self._summarize(report)
        return report

    def kill(self, pid: int) -> KillReport:
        """
        SIGKILL every descendant of ``pid``.

        Targets are collected first and killed in reverse discovery order,
        which tends to reach leaves before their parents. The tree is then
        scanned once more and anything still in it (late forks, missed
        entries) is killed too. This second pass runs exactly once.
        """
        report = KillReport(operation="kill", root=pid)
        try:
            collected = [r.pid for r in self._query.descendant_records(pid)]
        except ProcfsUnavailableError as e:
            return self._abort(report, e)

        report.collected = len(collected)
        if len(collected) > self._kill_capacity:
            report.over_capacity = True
            logger.warning(
                "Too many descendants of %d (%d > %d); some may be missed in the first pass",
                pid,
                len(collected),
                self._kill_capacity,
            )

        for target in reversed(collected):
            report.results.append(self._deliver(target, signal.SIGKILL, "kill descendant"))

        try:
            survivors = [r.pid for r in self._query.descendant_records(pid)]
        except ProcfsUnavailableError as e:
            logger.error("Skipping second kill pass for %d: %s", pid, e)
            survivors = []

        for target in survivors:
            report.reconciled.append(
                self._deliver(target, signal.SIGKILL, "kill missed descendant")
            )

        if report.reconciled:
            logger.warning(
                "%d descendants of %d were still present after the first pass and were signalled again",
                len(report.reconciled),
                pid,
            )

        self._summarize(report)
        return report

    def kill_zombie_parents(self, pid: int) -> DispatchReport:
        """
        SIGKILL the parent of every zombie in the tree rooted at ``pid``.

        The parent is taken from the zombie's recorded ppid as-is: it is not
        checked for tree membership or liveness, and a parent shared by
        several zombies is signalled once per zombie.
        """
        report = DispatchReport(operation="kill zombie parents", root=pid)
        try:
            zombies = [
                r
                for r in self._query.procfs.records()
                if r.is_zombie and r.ppid != 0 and self._query.is_member(pid, r.pid)
            ]
        except ProcfsUnavailableError as e:
            return self._abort(report, e)

        for zombie in zombies:
            result = replace(self._send(zombie.ppid, signal.SIGKILL), source_pid=zombie.pid)
            if result.ok:
                logger.info("Killed parent %d of zombie process %d", zombie.ppid, zombie.pid)
            else:
                logger.warning(
                    "Failed to kill parent %d of zombie %d: %s",
                    zombie.ppid,
                    zombie.pid,
                    result.error,
                )
            report.results.append(result)

        if not zombies:
            logger.info("No zombie processes found among descendants of %d", pid)
        return report

    def kill_root(self, pid: int) -> SignalResult:
        """SIGKILL ``pid`` itself; no tree logic involved."""
        return self._deliver(pid, signal.SIGKILL, "kill root process")

    def _deliver(self, pid: int, sig: int, action: str) -> SignalResult:
        result = self._send(pid, sig)
        if not result.ok:
            logger.warning("Failed to %s %d: %s", action, pid, result.error)
        return result

    def _abort(self, report: ReportT, error: ProcfsUnavailableError) -> ReportT:
        logger.error("%s", error)
        report.error = str(error)
        return report

    def _summarize(self, report: DispatchReport) -> None:
        logger.info(
            "%s under %d: %d signalled, %d failed, %d skipped",
            report.operation,
            report.root,
            len(report.signalled),
            len(report.failed),
            len(report.skipped),
        )
