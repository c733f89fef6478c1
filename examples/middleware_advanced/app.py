"""Advanced middleware: ordered chains, short-circuits and shared context.

Middleware listed first runs outermost. The app-wide chain adds
security headers to every response; individual routes get their own
chains built with ``adapt``:

- ``/`` logs the request and rejects anything but GET, even though the
  route itself accepts POST.
- ``/me`` requires a bearer token. ``TokenAuth`` answers 401 without
  calling the handler when the token is missing or wrong, and otherwise
  leaves the user in the request context for the handler to read.

Run:
    perch --log-level info run app:app --addr :8081
"""

import time

from perch import App, AppConfig, Next, Request, Response, adapt
from perch.middleware import (
    SECURITY_HEADERS,
    DefaultHeaders,
    RequestLogging,
    TokenAuth,
    require_method,
)

TOKENS = {"s3cret": "alice", "hunter2": "bob"}

app = App(AppConfig(port=8081))
app.add_middleware(DefaultHeaders(SECURITY_HEADERS))


async def timing(request: Request, next: Next) -> Response:
    """Stamp the elapsed handler time on the response."""
    start = time.perf_counter()
    response = await next(request)
    return response.with_header("X-Elapsed", f"{(time.perf_counter() - start) * 1000:.2f}ms")


def verify(token: str) -> str | None:
    return TOKENS.get(token)


async def hello(request: Request) -> Response:
    return Response("hello world", content_type="text/plain; charset=utf-8")


async def me(request: Request) -> Response:
    user = request.context.get("user")
    return Response(f"hello {user}", content_type="text/plain; charset=utf-8")


app.route("/", methods=["GET", "POST"])(adapt(hello, RequestLogging(), timing, require_method("GET")))
app.route("/me")(adapt(me, RequestLogging(), TokenAuth(verify, realm="example")))


if __name__ == "__main__":
    app.run(host="0.0.0.0")
