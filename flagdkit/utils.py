"""Small helpers shared across the flagd tooling."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import timedelta


def contains_string(items, s):
    """Return True if ``s`` is one of ``items``."""
    return s in items


def parse_annotation(s, default_ns):
    """Split a ``namespace/name`` reference, falling back to ``default_ns``."""
    parts = s.split("/")
    if len(parts) == 2:
        return parts[0], parts[1]
    return default_ns, s


def feature_flag_id(namespace, name):
    """Unique string used for volume mounts and file names."""
    return f"{namespace}_{name}"


def feature_flag_config_map_key(namespace, name):
    """Unique key (and file name) for config map data."""
    return f"{feature_flag_id(namespace, name)}.flagd.json"


@dataclass
class ExponentialBackoff:
    """Doubling delay, starting at ``start_delay`` and capped at ``max_delay``."""

    start_delay: timedelta
    max_delay: timedelta
    _counter: int = field(default=0, init=False, repr=False, compare=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def next(self):
        """Advance the backoff and return the delay for this attempt."""
        with self._lock:
            self._counter += 1
            step = self._counter
        delay = self.start_delay * (1 << (step - 1))
        return min(delay, self.max_delay)

    def reset(self):
        """Start counting attempts from the beginning again."""
        with self._lock:
            self._counter = 0