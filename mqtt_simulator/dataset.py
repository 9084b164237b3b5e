from __future__ import annotations

# The shared "current dataset" slot.
#
# One writer (the watcher) and any number of readers (the publisher, tests).
# The snapshot is an immutable tuple, so replacing it is a single reference
# swap: a reader sees either the old tuple or the new one, never a mix.
#
# Readers never take the lock. It only guards the version counter and wakes
# threads blocked in `wait_for_version()`.

import threading
from typing import Iterable

from .values import Entry


class DatasetCell:
    """Latest-value slot holding the current dataset snapshot."""

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._snapshot: tuple[Entry, ...] = tuple(entries)
        self._version = 0
        self._changed = threading.Condition(threading.Lock())

    @property
    def version(self) -> int:
        """Number of replacements so far."""
        return self._version

    def get(self) -> tuple[Entry, ...]:
        """Return the current snapshot."""
        return self._snapshot

    def replace(self, entries: Iterable[Entry]) -> int:
        """Publish a new snapshot and return its version."""
        snapshot = tuple(entries)
        with self._changed:
            self._snapshot = snapshot
            self._version += 1
            self._changed.notify_all()
            return self._version

    def wait_for_version(self, version: int, timeout: float | None = None) -> bool:
        """Block until the version is at least `version`.

        Returns False if `timeout` elapsed first.
        """
        with self._changed:
            return self._changed.wait_for(lambda: self._version >= version, timeout=timeout)
