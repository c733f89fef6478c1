"""perch.data: typed async SQLite access.

SQL in, dataclasses out::

    from perch.data import Database

    db = Database("sqlite:///app.db")
    await db.connect()
    users = await db.fetch(User, "SELECT * FROM users")

Inside a request, ``DatabaseSession`` middleware puts a pooled
:class:`Session` in the request context.
"""

from perch.data.database import Database, DatabaseConfig, Session, parse_url
from perch.data.errors import (
    DataError,
    PoolClosedError,
    QueryError,
    SessionReleasedError,
)

__all__ = [
    "DataError",
    "Database",
    "DatabaseConfig",
    "PoolClosedError",
    "QueryError",
    "Session",
    "SessionReleasedError",
    "parse_url",
]
