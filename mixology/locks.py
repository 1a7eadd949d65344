"""Keyed mutual exclusion: one lock per conversation thread.

Turns on the same thread run one at a time; turns on different threads never
contend.  Entries are reference counted and removed once no caller holds or
waits for them, so the map does not grow with the number of threads ever seen.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class ThreadLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @contextmanager
    def hold(self, thread: str) -> Iterator[None]:
        """Hold the exclusive section for *thread* for the duration of the block."""
        with self._guard:
            entry = self._entries.setdefault(thread, _Entry())
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[thread]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
