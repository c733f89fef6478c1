"""Basic middleware: wrap a handler to log every request path.

A middleware takes the request and the next handler, does its work and
calls ``next``. ``adapt`` wraps a single handler with it; no app-wide
registration is involved, so only the wrapped routes are logged.

Run:
    perch --log-level info run app:app --addr :8081
"""

from perch import App, AppConfig, Request, Response, adapt
from perch.middleware import log_path

app = App(AppConfig(port=8081))


async def foo(request: Request) -> Response:
    return Response("foo\n", content_type="text/plain; charset=utf-8")


async def bar(request: Request) -> Response:
    return Response("bar\n", content_type="text/plain; charset=utf-8")


app.route("/foo")(adapt(foo, log_path))
app.route("/bar")(adapt(bar, log_path))


if __name__ == "__main__":
    app.run(host="0.0.0.0")
