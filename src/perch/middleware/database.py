"""Attach a pooled database session to each request.

The session is checked out before the rest of the chain runs and is
registered on the request context's exit stack, so the connection goes
back to the pool once the response has been sent, even when the handler
raises::

    db = Database("sqlite:///app.db")
    app.add_middleware(DatabaseSession(db))

    @app.route("/users")
    async def users(request: Request):
        session = request.context.get("db")
        return {"users": await session.fetch_val("SELECT COUNT(*) FROM users")}
"""

from perch.data.database import Database
from perch.http.request import Request
from perch.middleware.protocol import AnyResponse, Next

DB_KEY = "db"


class DatabaseSession:
    """Middleware that stores a :class:`~perch.data.Session` in the context."""

    __slots__ = ("_db", "_key")

    def __init__(self, db: Database, *, key: str = DB_KEY) -> None:
        self._db = db
        self._key = key

    @property
    def database(self) -> Database:
        return self._db

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        if not self._db.connected:
            await self._db.connect()
        session = await request.context.enter_async_context(self._db.session())
        request.context.set(self._key, session)
        return await next(request)
