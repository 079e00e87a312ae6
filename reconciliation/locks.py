"""Per-record advisory locks.

The periodic pass and the order webhook both mutate canonical records. Each
holds the lock for the canonical variant while it reads and adjusts, so at
most one mutation per canonical record is in flight at a time.
"""

import asyncio
from typing import Dict


class RecordLocks:
    """Registry of asyncio locks keyed by record reference."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
