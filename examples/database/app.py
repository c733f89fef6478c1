"""Database: a pooled SQLite session per request.

``DatabaseSession`` checks a connection out of the pool before the
handler runs, puts it in the request context under ``"db"``, and hands
it back once the response has been sent.

Run:
    perch run app:app --addr :8081
"""

import os
from dataclasses import dataclass

from perch import App, AppConfig, Request
from perch.data import Database
from perch.middleware import DatabaseSession, RequestLogging

DB_URL = os.environ.get("PERCH_EXAMPLE_DB", "sqlite:///:memory:")

SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL UNIQUE,
    pages INTEGER NOT NULL
);
"""


@dataclass(frozen=True, slots=True)
class Book:
    id: int
    title: str
    pages: int


db = Database(DB_URL, pool_size=4)
app = App(AppConfig(port=8081), db=db)
app.add_middleware(RequestLogging())
app.add_middleware(DatabaseSession(db))


@app.on_startup
async def create_schema():
    await db.execute_script(SCHEMA)


@app.route("/books")
async def list_books(request: Request):
    session = request.context.get("db")
    books = await session.fetch(Book, "SELECT * FROM books ORDER BY title")
    return {"books": [{"title": b.title, "pages": b.pages} for b in books]}


@app.route("/books", methods=["POST"])
async def add_book(request: Request):
    data = await request.json()
    session = request.context.get("db")
    async with session.transaction():
        await session.execute(
            "INSERT INTO books (title, pages) VALUES (?, ?)", data["title"], int(data["pages"])
        )
    return {"created": data["title"]}, 201


@app.route("/books/{title}")
async def get_book(request: Request, title: str):
    session = request.context.get("db")
    book = await session.fetch_one(Book, "SELECT * FROM books WHERE title = ?", title)
    if book is None:
        return {"error": f"no book titled {title}"}, 404
    return {"title": book.title, "pages": book.pages}


@app.route("/stats")
async def stats(request: Request):
    session = request.context.get("db")
    return {"count": await session.fetch_val("SELECT COUNT(*) FROM books"), "idle": db.idle}


if __name__ == "__main__":
    app.run(host="0.0.0.0")
