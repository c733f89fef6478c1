"""Routing: placeholders in paths, plus a static file directory.

``/books/{title}/page/{page}`` binds both placeholders by name and the
handler receives them as arguments. Everything under ``/static/`` is
served from the ``static`` directory next to this file; paths that try
to climb out of it with ``..`` are refused.

Run:
    perch run app:app --addr :8081
"""

from pathlib import Path

from perch import App, AppConfig, Request, Response

STATIC_DIR = Path(__file__).parent / "static"

app = App(AppConfig(static_dir=STATIC_DIR, static_url="/static", port=8081))


@app.route("/books/{title}/page/{page}", name="book_page")
def read_page(request: Request, title: str, page: str):
    body = (
        f"Hello, you have requested: {request.path}\n"
        f"Hello, you have requested the book {title} on page {page}\n"
    )
    return Response(body, content_type="text/plain; charset=utf-8")


@app.route("/books/{title}")
def book(title: str):
    first_page = app.url_for("book_page", title=title, page=1)
    return f'<a href="{first_page}">Start reading {title}</a>'


if __name__ == "__main__":
    app.run(host="0.0.0.0")
