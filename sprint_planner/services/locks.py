"""Per-sprint mutual exclusion for mutating operations within one process."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from ..utils.logging import get_logger

logger = get_logger(__name__)


class SprintLockRegistry:
    """Hand out one ``asyncio.Lock`` per sprint id.

    Entries are dropped once nobody holds or waits on them, so the registry
    does not grow with the number of sprints ever touched.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    @asynccontextmanager
    async def acquire(self, sprint_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(sprint_id, asyncio.Lock())
        self._users[sprint_id] = self._users.get(sprint_id, 0) + 1
        try:
            async with lock:
                logger.debug("Acquired lock for sprint %d", sprint_id)
                yield
        finally:
            self._users[sprint_id] -= 1
            if self._users[sprint_id] == 0:
                del self._users[sprint_id]
                del self._locks[sprint_id]

    def is_locked(self, sprint_id: int) -> bool:
        lock = self._locks.get(sprint_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every request handled by this process
sprint_locks = SprintLockRegistry()
