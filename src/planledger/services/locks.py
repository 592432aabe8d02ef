# src/planledger/services/locks.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

from planledger.app_logger import get_logger

logger = get_logger(__name__)


class KeyedLockRegistry:
    """
    In-process async locks keyed by plan id.

    Serializes finalizes of the same plan inside one worker. Across workers
    the database advisory lock and the unique version constraint take over.
    Entries are dropped once nobody holds or waits on them.
    """

    def __init__(self) -> None:
        self._guard = asyncio.Lock()
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        async with self._guard:
            lock = self._locks.setdefault(key, asyncio.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                logger.debug(f"Acquired plan lock {key}")
                yield
        finally:
            async with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
