"""Async SQLite connection using stdlib sqlite3 + anyio.

Each public coroutine runs one complete blocking operation (execute and
fetch together) in an anyio worker thread, so a query costs a single
thread hop and the event loop never blocks on disk.

``check_same_thread=False`` is required: anyio's thread pool may run
consecutive calls for one connection on different threads. The pool
guarantees a connection is only used by one task at a time.
"""

import sqlite3
from collections.abc import Sequence
from typing import Any

import anyio.to_thread

type Row = dict[str, Any]


def _rows(cursor: sqlite3.Cursor, rows: list[Any]) -> list[Row]:
    columns = [desc[0] for desc in cursor.description or ()]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class AsyncConnection:
    """A sqlite3 connection driven from async code."""

    __slots__ = ("_conn", "path")

    def __init__(self, conn: sqlite3.Connection, path: str) -> None:
        self._conn = conn
        self.path = path

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        def run() -> list[Row]:
            cursor = self._conn.execute(sql, params)
            return _rows(cursor, cursor.fetchall())

        return await anyio.to_thread.run_sync(run)

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        def run() -> Row | None:
            cursor = self._conn.execute(sql, params)
            row = cursor.fetchone()
            return None if row is None else _rows(cursor, [row])[0]

        return await anyio.to_thread.run_sync(run)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the number of rows affected."""

        def run() -> int:
            return self._conn.execute(sql, params).rowcount

        return await anyio.to_thread.run_sync(run)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]]) -> int:
        def run() -> int:
            return self._conn.executemany(sql, params_seq).rowcount

        return await anyio.to_thread.run_sync(run)

    async def execute_script(self, sql: str) -> None:
        await anyio.to_thread.run_sync(self._conn.executescript, sql)

    async def close(self) -> None:
        await anyio.to_thread.run_sync(self._conn.close)


async def connect(path: str) -> AsyncConnection:
    """Open a connection in autocommit mode.

    Statements commit immediately unless wrapped in an explicit
    ``BEGIN``; ``Session.transaction()`` issues those.
    """

    def run() -> sqlite3.Connection:
        conn = sqlite3.connect(path, autocommit=True, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys=ON")
        if path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    return AsyncConnection(await anyio.to_thread.run_sync(run), path)
