"""Typed async SQLite access with a connection pool.

SQL in, dataclasses out. Blocking ``sqlite3`` calls run in anyio worker
threads. Idle connections wait in an anyio memory object stream: checking
one out blocks while the pool is exhausted, releasing it puts it back.

Connection URL format::

    sqlite:///path/to/db.sqlite    # SQLite file
    sqlite:///:memory:             # In-memory SQLite (pool of one)

Usage::

    db = Database("sqlite:///app.db", pool_size=4)
    await db.connect()

    async with db.session() as session:
        users = await session.fetch(User, "SELECT * FROM users")

    await db.disconnect()
"""

import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from perch.data import _sqlite
from perch.data._mapping import row_mapper
from perch.data.errors import DataError, PoolClosedError, QueryError, SessionReleasedError

logger = logging.getLogger("perch.data")

_SCHEME = "sqlite:///"


def parse_url(url: str) -> str:
    """Return the SQLite path for a ``sqlite:///`` URL.

    Raises ``DataError`` for any other scheme.
    """
    if not url.startswith(_SCHEME):
        msg = f"Unsupported database URL {url!r}. Use sqlite:///path/to/db or sqlite:///:memory:"
        raise DataError(msg)
    path = url[len(_SCHEME) :]
    if not path:
        msg = f"Database URL {url!r} has no path"
        raise DataError(msg)
    return path


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Database connection configuration."""

    url: str
    pool_size: int = 5
    echo: bool = False

    @property
    def path(self) -> str:
        return parse_url(self.url)


class Session:
    """Queries bound to one checked-out connection.

    A session belongs to a single task (normally one request) and stays
    usable until its ``Database.session()`` block exits.
    """

    __slots__ = ("_conn", "_echo", "_released")

    def __init__(self, conn: _sqlite.AsyncConnection, *, echo: bool = False) -> None:
        self._conn = conn
        self._echo = echo
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def _connection(self) -> _sqlite.AsyncConnection:
        if self._released:
            msg = "Session used after its connection was returned to the pool"
            raise SessionReleasedError(msg)
        return self._conn

    def _log_query(self, sql: str, params: Any, elapsed: float) -> None:
        level = logging.INFO if self._echo else logging.DEBUG
        if logger.isEnabledFor(level):
            logger.log(level, "%6.1fms  %s  params=%r", elapsed * 1000, sql, params)

    async def _run(self, op: str, sql: str, params: Any) -> Any:
        conn = self._connection()
        t0 = time.perf_counter()
        try:
            return await getattr(conn, op)(sql, params)
        except Exception as exc:
            raise QueryError(str(exc)) from exc
        finally:
            self._log_query(sql, params, time.perf_counter() - t0)

    async def fetch[T](self, cls: type[T], sql: str, /, *params: Any) -> list[T]:
        """Run a query and map every row onto *cls*.

        Usage::

            users = await session.fetch(User, "SELECT * FROM users WHERE active = ?", True)
        """
        rows = await self._run("fetch_all", sql, params)
        map_row = row_mapper(cls)
        return [map_row(row) for row in rows]

    async def fetch_one[T](self, cls: type[T], sql: str, /, *params: Any) -> T | None:
        """Run a query and map the first row onto *cls*, or return ``None``."""
        row = await self._run("fetch_one", sql, params)
        return None if row is None else row_mapper(cls)(row)

    async def fetch_val(self, sql: str, /, *params: Any) -> Any:
        """Return the first column of the first row (``COUNT(*)`` and friends)."""
        row = await self._run("fetch_one", sql, params)
        if row is None:
            return None
        return next(iter(row.values()))

    async def execute(self, sql: str, /, *params: Any) -> int:
        """Run an INSERT/UPDATE/DELETE and return the number of rows affected."""
        return await self._run("execute", sql, params)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]], /) -> int:
        return await self._run("execute_many", sql, params_seq)

    async def execute_script(self, sql: str, /) -> None:
        """Run several ``;``-separated statements, e.g. a schema."""
        conn = self._connection()
        try:
            await conn.execute_script(sql)
        except Exception as exc:
            raise QueryError(str(exc)) from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the block atomically: commit on clean exit, roll back on error.

        Nested blocks join the outer transaction.
        """
        conn = self._connection()
        if conn.in_transaction:
            yield
            return
        await conn.execute("BEGIN")
        try:
            yield
        except BaseException:
            with anyio.CancelScope(shield=True):
                await conn.execute("ROLLBACK")
            raise
        await conn.execute("COMMIT")


class Database:
    """A pool of SQLite connections handing out :class:`Session` objects.

    ``pool_size`` connections are opened by ``connect()``. An in-memory
    database is private to its connection, so ``:memory:`` always uses a
    pool of one.

    The query methods on ``Database`` itself check out a session for the
    single call; use ``session()`` to run several queries on one
    connection.
    """

    __slots__ = ("_config", "_connected", "_lock", "_receive", "_send", "_size")

    def __init__(self, url: str, /, *, pool_size: int = 5, echo: bool = False) -> None:
        if pool_size < 1:
            msg = f"pool_size must be at least 1, got {pool_size}"
            raise ValueError(msg)
        self._config = DatabaseConfig(url=url, pool_size=pool_size, echo=echo)
        path = self._config.path
        self._size = 1 if path == ":memory:" else pool_size
        self._send: MemoryObjectSendStream[_sqlite.AsyncConnection] | None = None
        self._receive: MemoryObjectReceiveStream[_sqlite.AsyncConnection] | None = None
        self._connected = False
        self._lock: anyio.Lock | None = None

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def pool_size(self) -> int:
        return self._size

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def idle(self) -> int:
        """Number of connections currently waiting in the pool."""
        if self._receive is None:
            return 0
        return self._receive.statistics().current_buffer_used

    # -- Lifecycle --

    async def connect(self) -> None:
        """Open the pool. Safe to call more than once."""
        if self._lock is None:
            self._lock = anyio.Lock()
        async with self._lock:
            if self._connected:
                return
            path = self._config.path
            send, receive = anyio.create_memory_object_stream[_sqlite.AsyncConnection](
                max_buffer_size=self._size
            )
            for _ in range(self._size):
                send.send_nowait(await _sqlite.connect(path))
            self._send, self._receive = send, receive
            self._connected = True
            logger.info("Opened %s with %d connection(s)", path, self._size)

    async def disconnect(self) -> None:
        """Close idle connections and stop handing out new ones.

        Sessions still checked out close their connection when released.
        """
        if not self._connected:
            return
        self._connected = False
        send, receive = self._send, self._receive
        self._send = self._receive = None
        assert send is not None and receive is not None
        send.close()
        while True:
            try:
                conn = receive.receive_nowait()
            except (anyio.WouldBlock, anyio.EndOfStream):
                break
            await conn.close()
        receive.close()
        logger.info("Closed %s", self._config.path)

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # -- Pool --

    async def _acquire(self) -> _sqlite.AsyncConnection:
        receive = self._receive
        if not self._connected or receive is None:
            msg = "Database pool is not open; call connect() first"
            raise PoolClosedError(msg)
        try:
            return await receive.receive()
        except (anyio.EndOfStream, anyio.ClosedResourceError) as exc:
            msg = "Database pool was closed while waiting for a connection"
            raise PoolClosedError(msg) from exc

    async def _release(self, conn: _sqlite.AsyncConnection) -> None:
        with anyio.CancelScope(shield=True):
            if conn.in_transaction:
                try:
                    await conn.execute("ROLLBACK")
                except Exception:
                    logger.exception("Rollback failed; dropping connection to %s", conn.path)
                    await self._replace(conn)
                    return
            send = self._send
            if send is not None:
                try:
                    send.send_nowait(conn)
                    return
                except (anyio.WouldBlock, anyio.BrokenResourceError, anyio.ClosedResourceError):
                    pass
            # Pool closed (or reopened) while this connection was out
            await conn.close()

    async def _replace(self, conn: _sqlite.AsyncConnection) -> None:
        """Close a broken connection and, while the pool is open, add a fresh one."""
        try:
            await conn.close()
        except Exception:
            logger.warning("Closing broken connection to %s failed", conn.path, exc_info=True)
        send = self._send
        if send is None:
            return
        fresh = await _sqlite.connect(self._config.path)
        try:
            send.send_nowait(fresh)
        except (anyio.WouldBlock, anyio.BrokenResourceError, anyio.ClosedResourceError):
            await fresh.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        """Check out a connection for the duration of the block.

        Blocks while every connection is in use. An uncommitted
        transaction is rolled back before the connection goes back.
        """
        conn = await self._acquire()
        session = Session(conn, echo=self._config.echo)
        try:
            yield session
        finally:
            session._released = True
            await self._release(conn)

    # -- One-shot queries --

    async def fetch[T](self, cls: type[T], sql: str, /, *params: Any) -> list[T]:
        async with self.session() as session:
            return await session.fetch(cls, sql, *params)

    async def fetch_one[T](self, cls: type[T], sql: str, /, *params: Any) -> T | None:
        async with self.session() as session:
            return await session.fetch_one(cls, sql, *params)

    async def fetch_val(self, sql: str, /, *params: Any) -> Any:
        async with self.session() as session:
            return await session.fetch_val(sql, *params)

    async def execute(self, sql: str, /, *params: Any) -> int:
        async with self.session() as session:
            return await session.execute(sql, *params)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]], /) -> int:
        async with self.session() as session:
            return await session.execute_many(sql, params_seq)

    async def execute_script(self, sql: str, /) -> None:
        async with self.session() as session:
            await session.execute_script(sql)

    def __repr__(self) -> str:
        state = "connected" if self._connected else "disconnected"
        return f"Database({self._config.url!r}, pool_size={self._size}, {state})"
