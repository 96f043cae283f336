"""Per-key asyncio locks."""

from __future__ import annotations

import asyncio
from typing import Hashable
from weakref import WeakValueDictionary


class KeyedLocks:
    """Hands out one ``asyncio.Lock`` per key.

    Locks are held weakly, so entries for keys nobody is waiting on disappear
    instead of accumulating for every payment id ever seen.
    """

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[Hashable, asyncio.Lock] = (
            WeakValueDictionary()
        )

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
