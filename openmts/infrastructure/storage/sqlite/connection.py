"""
Pooled aiosqlite connections for the inventory database.

Connections run in autocommit mode and every write goes through
``get_transaction()``, which opens with ``BEGIN IMMEDIATE``. The write lock is
therefore held from the first statement, so a read-then-write such as the tip
check in ``amend_last`` cannot interleave with a writer in another process.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from openmts.config import get_logger, get_settings

logger = get_logger(__name__)

# Applied to every pooled connection. busy_timeout is added per pool.
INVENTORY_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


class ConnectionPool:
    """Fixed set of connections to one inventory database, handed out one caller at a time."""

    def __init__(self, db_path: Path, pool_size: int = 5, busy_timeout: int = 30000):
        self.db_path = db_path
        self.pool_size = pool_size
        self.busy_timeout = busy_timeout

        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._opened: list[aiosqlite.Connection] = []
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return bool(self._opened)

    async def open(self) -> None:
        async with self._open_lock:
            if self._opened:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            for _ in range(self.pool_size):
                conn = await self._connect()
                self._opened.append(conn)
                self._idle.put_nowait(conn)
        logger.info("inventory_db_opened", db_path=str(self.db_path), pool_size=self.pool_size)

    async def _connect(self) -> aiosqlite.Connection:
        # isolation_level=None: transactions are begun explicitly below
        conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        for pragma in (*INVENTORY_PRAGMAS, f"PRAGMA busy_timeout={self.busy_timeout}"):
            await conn.execute(pragma)
        conn.row_factory = aiosqlite.Row
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection for reads; each statement commits on its own."""
        if not self.is_open:
            await self.open()
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection inside ``BEGIN IMMEDIATE``.

        Commits when the block exits normally and rolls back when it raises,
        including when a store raises a domain error after its checks.
        """
        async with self.acquire() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

    async def close(self) -> None:
        async with self._open_lock:
            while self._opened:
                await self._opened.pop().close()
            self._idle = asyncio.Queue()
        logger.info("inventory_db_closed", db_path=str(self.db_path))


_pool: ConnectionPool | None = None


async def get_pool() -> ConnectionPool:
    """Open the pool for ``settings.storage.db_path`` on first use."""
    global _pool
    if _pool is None:
        storage = get_settings().storage
        _pool = ConnectionPool(storage.db_path, storage.pool_size, storage.busy_timeout)
        await _pool.open()
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def get_connection() -> AsyncIterator[aiosqlite.Connection]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncIterator[aiosqlite.Connection]:
    pool = await get_pool()
    async with pool.transaction() as conn:
        yield conn
