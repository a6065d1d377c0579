"""Per-batch mutual exclusion for inventory writes."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class BatchLockRegistry:
    """
    Hands out one ``asyncio.Lock`` per batch ID.

    Writers on the same batch queue behind each other; writers on different
    batches never contend. A batch's lock is dropped from the registry once
    nobody holds or waits for it, so the registry does not grow with the
    number of batches ever touched.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, batch_id: str, timeout: float | None = None) -> AsyncIterator[None]:
        """
        Hold the lock of ``batch_id`` for the body of the ``async with`` block.

        Raises:
            TimeoutError: If the lock could not be taken within ``timeout`` seconds.
        """
        lock = self._locks.get(batch_id)
        if lock is None:
            lock = self._locks[batch_id] = asyncio.Lock()
            self._users[batch_id] = 0
        self._users[batch_id] += 1

        try:
            if timeout is None:
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), timeout)
        except BaseException:
            self._release_user(batch_id)
            raise

        try:
            yield
        finally:
            lock.release()
            self._release_user(batch_id)

    def is_locked(self, batch_id: str) -> bool:
        lock = self._locks.get(batch_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    def _release_user(self, batch_id: str) -> None:
        self._users[batch_id] -= 1
        if self._users[batch_id] == 0:
            del self._users[batch_id]
            del self._locks[batch_id]
