"""Runtime settings for proctree."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from proctree.ancestry import DEFAULT_MAX_HOPS
from proctree.dispatcher import DEFAULT_KILL_CAPACITY
from proctree.procfs import DEFAULT_PROC_ROOT

logger = logging.getLogger(__name__)

MIN_REFRESH_INTERVAL = 0.1


@dataclass(slots=True)
class Settings:
    """Tunables shared by the command line and the viewer."""

    proc_root: str = DEFAULT_PROC_ROOT
    max_hops: int = DEFAULT_MAX_HOPS
    kill_capacity: int = DEFAULT_KILL_CAPACITY
    refresh_interval: float = 2.0

    def __post_init__(self) -> None:
        self.refresh_interval = max(MIN_REFRESH_INTERVAL, self.refresh_interval)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from PROCTREE_* environment variables.

        Values that fail to parse, or are not positive, fall back to the
        default with a warning.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            proc_root=env.get("PROCTREE_PROC_ROOT") or defaults.proc_root,
            max_hops=_positive(env, "PROCTREE_MAX_HOPS", int, defaults.max_hops),
            kill_capacity=_positive(env, "PROCTREE_KILL_CAPACITY", int, defaults.kill_capacity),
            refresh_interval=_positive(
                env, "PROCTREE_REFRESH_INTERVAL", float, defaults.refresh_interval
            ),
        )


def _positive(env, key, convert, default):
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = convert(raw)
    except ValueError:
        value = None
    if value is None or value <= 0:
        logger.warning("Ignoring invalid %s=%r; using %r", key, raw, default)
        return default
    return value
