"""Tree membership by walking the parent-pid chain."""

import logging

from proctree.procfs import ProcFS

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 1000


def is_descendant(
    root_pid: int,
    candidate_pid: int,
    procfs: ProcFS,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> bool:
    """
    Check whether ``candidate_pid`` lies in the tree rooted at ``root_pid``.

    A process counts as its own descendant. The walk reads one record per
    hop and stops after ``max_hops`` steps, which guards against cyclic or
    inconsistent parent data while processes change underneath us.

    Args:
        root_pid: Root of the tree.
        candidate_pid: Process to test.
        procfs: Source of process records.
        max_hops: Upper bound on parent links followed.

    Returns:
        True if the parent chain of the candidate reaches the root.
    """
    if root_pid <= 0 or candidate_pid <= 0:
        return False
    if candidate_pid == root_pid:
        return True

    record = procfs.lookup(candidate_pid)
    if record is None:
        return False

    current = record.ppid
    for _ in range(max_hops):
        if current == root_pid:
            return True
        if current == 0:
            return False
        parent = procfs.lookup(current)
        if parent is None:
            return False
        current = parent.ppid

    logger.debug(
        "Gave up walking ancestry of %d after %d hops (root %d)",
        candidate_pid,
        max_hops,
        root_pid,
    )
    return False
