"""
Fixed-size aiosqlite pool for the ledger database.

Connections are opened in autocommit mode so that every transaction is
started explicitly. Ledger writes use BEGIN IMMEDIATE, which takes the
database write lock before the first read of the read-modify-write.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from stockledger.config import get_logger, get_settings
from stockledger.config.settings import StorageSettings

logger = get_logger(__name__)

# Applied to every new connection; busy_timeout is added per pool
CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


class ConnectionPool:
    """
    Queue of open connections to one database file.

    `acquire()` lends a connection and always hands it back;
    `transaction()` wraps the loan in BEGIN/COMMIT with rollback on any
    exception, cancellation included.
    """

    def __init__(
        self,
        db_path: Path,
        pool_size: int = 5,
        busy_timeout: int = 30000,
    ):
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.busy_timeout = busy_timeout

        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)
        self._opened: list[aiosqlite.Connection] = []
        self._ready = False
        self._lock = asyncio.Lock()
        self._recovering: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(
        cls,
        storage: StorageSettings,
        db_path: Path | None = None,
        pool_size: int | None = None,
    ) -> "ConnectionPool":
        return cls(
            db_path or storage.db_path,
            pool_size=pool_size or storage.pool_size,
            busy_timeout=storage.busy_timeout,
        )

    async def initialize(self) -> None:
        """Open `pool_size` connections. Safe to call more than once."""
        async with self._lock:
            if self._ready:
                return

            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            for _ in range(self.pool_size):
                conn = await self._open()
                self._opened.append(conn)
                self._idle.put_nowait(conn)

            self._ready = True
            logger.info(
                "connection_pool_initialized",
                db_path=str(self.db_path),
                pool_size=self.pool_size,
                busy_timeout_ms=self.busy_timeout,
            )

    async def _open(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        for pragma in CONNECTION_PRAGMAS:
            await conn.execute(pragma)
        # SQLite waits this long for a competing writer before reporting "locked"
        await conn.execute(f"PRAGMA busy_timeout={self.busy_timeout}")
        conn.row_factory = aiosqlite.Row
        return conn

    @property
    def available(self) -> int:
        """Connections currently idle in the pool."""
        return self._idle.qsize()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection, opening the pool on first use."""
        if not self._ready:
            await self.initialize()

        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self, immediate: bool = False) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection inside an explicit transaction.

        Args:
            immediate: Take the write lock at BEGIN instead of at the first write
        """
        if not self._ready:
            await self.initialize()

        conn = await self._idle.get()
        try:
            await conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        except BaseException:
            # A cancelled BEGIN keeps running in the connection's worker thread
            # and may still take the write lock once the current writer commits
            self._recover(conn)
            raise

        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        else:
            await conn.commit()
        finally:
            self._idle.put_nowait(conn)

    def _recover(self, conn: aiosqlite.Connection) -> None:
        """Hold `conn` out of the pool until its pending BEGIN is rolled back."""
        task = asyncio.get_running_loop().create_task(self._rollback_and_release(conn))
        self._recovering.add(task)
        task.add_done_callback(self._recovering.discard)

    async def _rollback_and_release(self, conn: aiosqlite.Connection) -> None:
        # Queued behind the pending BEGIN, so this runs only after it finishes
        try:
            await conn.rollback()
        except aiosqlite.Error as e:
            logger.warning("connection_replaced", db_path=str(self.db_path), error=str(e))
            self._opened.remove(conn)
            await conn.close()
            conn = await self._open()
            self._opened.append(conn)
        self._idle.put_nowait(conn)
        logger.debug("connection_recovered", available=self.available)

    async def close(self) -> None:
        if self._recovering:
            await asyncio.gather(*self._recovering)
        async with self._lock:
            for conn in self._opened:
                await conn.close()
            self._opened.clear()
            self._idle = asyncio.Queue(maxsize=self.pool_size)
            self._ready = False
            logger.info("connection_pool_closed", db_path=str(self.db_path))


_pool: ConnectionPool | None = None


async def get_pool() -> ConnectionPool:
    """Shared pool for the configured database."""
    global _pool
    if _pool is None:
        _pool = ConnectionPool.from_settings(get_settings().storage)
        await _pool.initialize()
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
