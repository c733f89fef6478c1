"""Tests for perch.data — SQLite pool, sessions and DatabaseSession middleware."""

import sqlite3
from dataclasses import dataclass

import anyio
import pytest

from perch.app import App
from perch.data import _sqlite
from perch.data import (
    DataError,
    Database,
    PoolClosedError,
    QueryError,
    SessionReleasedError,
    parse_url,
)
from perch.http.request import Request
from perch.middleware.database import DatabaseSession
from perch.testing import TestClient

SCHEMA = """
CREATE TABLE books (id INTEGER PRIMARY KEY, title TEXT NOT NULL UNIQUE, pages INTEGER, done INTEGER);
"""


@dataclass(frozen=True, slots=True)
class Book:
    id: int
    title: str
    pages: int | None = None
    done: bool = False


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'books.db'}", pool_size=2)
    await database.connect()
    await database.execute_script(SCHEMA)
    yield database
    await database.disconnect()


class TestParseUrl:
    def test_file(self) -> None:
        assert parse_url("sqlite:///data/app.db") == "data/app.db"

    def test_memory(self) -> None:
        assert parse_url("sqlite:///:memory:") == ":memory:"

    def test_other_scheme(self) -> None:
        with pytest.raises(DataError):
            parse_url("postgresql://localhost/db")

    def test_memory_pool_is_one(self) -> None:
        assert Database("sqlite:///:memory:", pool_size=8).pool_size == 1


class TestQueries:
    async def test_fetch_maps_dataclasses(self, db) -> None:
        await db.execute("INSERT INTO books (title, pages, done) VALUES (?, ?, ?)", "Dune", 412, 1)
        books = await db.fetch(Book, "SELECT * FROM books")
        assert books == [Book(id=1, title="Dune", pages=412, done=True)]

    async def test_fetch_one_and_val(self, db) -> None:
        await db.execute_many(
            "INSERT INTO books (title, pages) VALUES (?, ?)", [("A", 1), ("B", 2)]
        )
        assert (await db.fetch_one(Book, "SELECT * FROM books WHERE title = ?", "B")).pages == 2
        assert await db.fetch_one(Book, "SELECT * FROM books WHERE title = ?", "C") is None
        assert await db.fetch_val("SELECT COUNT(*) FROM books") == 2

    async def test_bad_sql_raises_query_error(self, db) -> None:
        with pytest.raises(QueryError) as exc_info:
            await db.fetch_val("SELECT nope FROM books")
        assert exc_info.value.__cause__ is not None

    async def test_transaction_rolls_back(self, db) -> None:
        async with db.session() as session:
            with pytest.raises(QueryError):
                async with session.transaction():
                    await session.execute("INSERT INTO books (title) VALUES (?)", "A")
                    await session.execute("INSERT INTO books (title) VALUES (?)", "A")
        assert await db.fetch_val("SELECT COUNT(*) FROM books") == 0

    async def test_transaction_commits(self, db) -> None:
        async with db.session() as session, session.transaction():
            await session.execute("INSERT INTO books (title) VALUES (?)", "A")
            await session.execute("INSERT INTO books (title) VALUES (?)", "B")
        assert await db.fetch_val("SELECT COUNT(*) FROM books") == 2


class TestPool:
    async def test_sessions_return_to_pool(self, db) -> None:
        assert db.idle == 2
        async with db.session():
            assert db.idle == 1
        assert db.idle == 2

    async def test_session_unusable_after_release(self, db) -> None:
        async with db.session() as session:
            pass
        with pytest.raises(SessionReleasedError):
            await session.fetch_val("SELECT 1")

    async def test_exhausted_pool_blocks(self, db) -> None:
        order: list[str] = []

        async def hold(name: str) -> None:
            async with db.session():
                order.append(f"{name}-in")
                await anyio.sleep(0.05)
                order.append(f"{name}-out")

        async with anyio.create_task_group() as tg:
            for name in ("a", "b", "c"):
                tg.start_soon(hold, name)
        # Only two connections: the third session waits for a release
        assert order.index("c-in") > min(order.index("a-out"), order.index("b-out"))

    async def test_closed_pool(self, tmp_path) -> None:
        database = Database(f"sqlite:///{tmp_path / 'x.db'}")
        with pytest.raises(PoolClosedError):
            async with database.session():
                pass

    async def test_open_transaction_rolled_back_on_release(self, db) -> None:
        async with db.session() as session:
            await session.execute("BEGIN")
            await session.execute("INSERT INTO books (title) VALUES (?)", "A")
        assert await db.fetch_val("SELECT COUNT(*) FROM books") == 0

    async def test_failed_rollback_replaces_connection(self, db, monkeypatch) -> None:
        execute = _sqlite.AsyncConnection.execute

        async def failing_rollback(conn, sql, params=()):
            if sql == "ROLLBACK":
                raise sqlite3.OperationalError("disk I/O error")
            return await execute(conn, sql, params)

        monkeypatch.setattr(_sqlite.AsyncConnection, "execute", failing_rollback)
        async with db.session() as session:
            await session.execute("BEGIN")
        assert db.idle == db.pool_size

        monkeypatch.undo()
        async with db.session() as first, db.session() as second:
            assert not first.in_transaction
            assert not second.in_transaction


class TestDatabaseSession:
    async def test_session_attached_and_released(self, db) -> None:
        app = App()
        app.add_middleware(DatabaseSession(db))

        @app.route("/count")
        async def count(request: Request):
            session = request.context.get("db")
            return str(await session.fetch_val("SELECT COUNT(*) FROM books"))

        async with TestClient(app) as client:
            response = await client.get("/count")
        assert response.text == "0"
        assert db.idle == db.pool_size

    async def test_released_when_handler_fails(self, db) -> None:
        app = App()
        app.add_middleware(DatabaseSession(db, key="conn"))

        @app.route("/")
        async def index(request: Request):
            request.context.get("conn")
            raise RuntimeError("boom")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert db.idle == db.pool_size
