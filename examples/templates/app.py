"""Templates: render a todo list through a layout file.

The handler returns a ``Template``; perch loads ``layout.html`` from the
template directory and renders it with the given data. Values are
HTML-escaped, so a todo titled ``<script>`` shows up as text.

Run:
    perch run app:app --addr :8081
"""

from dataclasses import dataclass
from pathlib import Path

from perch import App, AppConfig, InlineTemplate, Template

TEMPLATES_DIR = Path(__file__).parent / "templates"


@dataclass(frozen=True, slots=True)
class Todo:
    title: str
    done: bool = False


TODOS = [
    Todo("Task 1"),
    Todo("Task 2", done=True),
    Todo("Task 3", done=True),
]

app = App(AppConfig(template_dir=TEMPLATES_DIR, port=8081))


@app.route("/")
def index():
    return Template("layout.html", page_title="My TODO List", todos=TODOS)


@app.route("/search")
def search(request):
    # Echoes user input back; autoescape keeps it inert
    term = request.query.get("q", "")
    matches = [t for t in TODOS if term.lower() in t.title.lower()]
    return Template("layout.html", page_title=f"Results for {term}", todos=matches)


@app.route("/count")
def count():
    return InlineTemplate("<p>{{ n }} todos, {{ done }} done</p>", n=len(TODOS), done=sum(t.done for t in TODOS))


@app.route("/broken")
def broken():
    return Template("layout.html", page_title="Missing todos")


if __name__ == "__main__":
    app.run(host="0.0.0.0")
