"""Relationship queries over the live process table."""

import logging

from proctree.ancestry import DEFAULT_MAX_HOPS, is_descendant
from proctree.models import ProcessRecord, QueryResult
from proctree.procfs import ProcFS, ProcfsUnavailableError

logger = logging.getLogger(__name__)

# Returned by count queries when the process table could not be read.
COUNT_UNAVAILABLE = -1


class TreeQuery:
    """
    Derives process relationships from a fresh scan on every call.

    Nothing is cached between calls. List queries never raise: a failure to
    read the process table yields a QueryResult carrying the error.
    """

    def __init__(self, procfs: ProcFS | None = None, max_hops: int = DEFAULT_MAX_HOPS) -> None:
        self._procfs = procfs if procfs is not None else ProcFS()
        self._max_hops = max_hops

    @property
    def procfs(self) -> ProcFS:
        return self._procfs

    @property
    def max_hops(self) -> int:
        return self._max_hops

    def record(self, pid: int) -> ProcessRecord | None:
        """Current record of ``pid``, or None if it cannot be observed."""
        return self._procfs.lookup(pid)

    def is_member(self, root_pid: int, pid: int) -> bool:
        """Whether ``pid`` is in the tree rooted at ``root_pid``."""
        return is_descendant(root_pid, pid, self._procfs, self._max_hops)

    def is_defunct(self, pid: int) -> bool | None:
        """True if ``pid`` is a zombie, None if it cannot be observed."""
        record = self.record(pid)
        if record is None:
            return None
        return record.is_zombie

    def direct_children(self, pid: int) -> QueryResult:
        try:
            return QueryResult([r.pid for r in self._procfs.records() if r.ppid == pid])
        except ProcfsUnavailableError as e:
            return self._failed(e)

    def siblings(self, pid: int) -> QueryResult:
        return self._siblings(pid, zombies_only=False)

    def zombie_siblings(self, pid: int) -> QueryResult:
        return self._siblings(pid, zombies_only=True)

    def _siblings(self, pid: int, zombies_only: bool) -> QueryResult:
        target = self.record(pid)
        if target is None:
            logger.debug("No record for %d; it has no siblings", pid)
            return QueryResult()
        try:
            return QueryResult([
                r.pid
                for r in self._procfs.records()
                if r.pid != pid and r.ppid == target.ppid and (r.is_zombie or not zombies_only)
            ])
        except ProcfsUnavailableError as e:
            return self._failed(e)

    def descendant_records(self, pid: int) -> list[ProcessRecord]:
        """
        Records of every process below ``pid``, in scan order.

        Raises:
            ProcfsUnavailableError: If the process table cannot be listed.
        """
        return [
            r
            for r in self._procfs.records()
            if r.pid != pid and self.is_member(pid, r.pid)
        ]

    def descendants(self, pid: int) -> QueryResult:
        try:
            return QueryResult([r.pid for r in self.descendant_records(pid)])
        except ProcfsUnavailableError as e:
            return self._failed(e)

    def non_direct_descendants(self, pid: int) -> QueryResult:
        """Descendants of ``pid`` that are not its immediate children."""
        try:
            return QueryResult([r.pid for r in self.descendant_records(pid) if r.ppid != pid])
        except ProcfsUnavailableError as e:
            return self._failed(e)

    def zombie_descendants(self, pid: int) -> QueryResult:
        """Zombie descendants of ``pid``, excluding ``pid`` itself."""
        try:
            return QueryResult([r.pid for r in self.descendant_records(pid) if r.is_zombie])
        except ProcfsUnavailableError as e:
            return self._failed(e)

    def zombie_descendant_count(self, pid: int) -> int:
        """
        Count zombies in the tree rooted at ``pid``.

        Unlike zombie_descendants(), ``pid`` itself is counted when it is a
        zombie. Returns COUNT_UNAVAILABLE if the process table cannot be read.
        """
        try:
            return sum(
                1
                for r in self._procfs.records()
                if r.is_zombie and self.is_member(pid, r.pid)
            )
        except ProcfsUnavailableError as e:
            logger.error("%s", e)
            return COUNT_UNAVAILABLE

    def grandchildren(self, pid: int) -> QueryResult:
        """
        Children of the children of ``pid``.

        Both levels are read from one snapshot so the join sees a single
        view of the table.
        """
        try:
            snapshot = self._procfs.snapshot()
        except ProcfsUnavailableError as e:
            return self._failed(e)
        return QueryResult([
            grandchild
            for child in snapshot.children_of(pid)
            for grandchild in snapshot.children_of(child)
        ])

    def _failed(self, error: ProcfsUnavailableError) -> QueryResult:
        logger.error("%s", error)
        return QueryResult.failed(str(error))
