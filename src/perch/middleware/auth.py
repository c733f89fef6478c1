"""Authentication and request-shape guards.

``TokenAuth`` checks an ``Authorization: Bearer <token>`` header. On
failure it answers 401 itself and the rest of the chain never runs; on
success it stores the verified user in the request context under
``"user"`` so inner middleware and the handler can read it::

    async def verify(token: str) -> str | None:
        return USERS.get(token)

    app.add_middleware(TokenAuth(verify))

    @app.route("/me")
    def me(request: Request):
        return f"hello {request.context.get('user')}"

``require_method`` is the companion guard used in the middleware
tutorial: it rejects any request whose method is not listed.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from perch._internal.invoke import invoke
from perch.errors import Unauthorized
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import AnyResponse, Middleware, Next

type TokenVerifier = Callable[[str], Any | Awaitable[Any]]

USER_KEY = "user"


def bearer_token(request: Request) -> str | None:
    """Return the bearer token from the Authorization header, if any."""
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class TokenAuth:
    """Reject requests without a valid bearer token.

    *verify* receives the raw token and returns the user (any truthy
    object) or ``None``. It may be sync or async.

    Requests for one of the *exempt* paths, or anything below it
    (``"/health"`` covers ``/health/db`` but not ``/healthz``), pass
    through untouched.
    """

    __slots__ = ("_exempt", "_key", "_realm", "_verify")

    def __init__(
        self,
        verify: TokenVerifier,
        *,
        realm: str = "perch",
        key: str = USER_KEY,
        exempt: tuple[str, ...] = (),
    ) -> None:
        self._verify = verify
        self._realm = realm
        self._key = key
        self._exempt = exempt

    def _reject(self, detail: str) -> Response:
        error = Unauthorized(detail, realm=self._realm)
        return Response(
            body=error.detail, status=error.status, content_type="text/plain; charset=utf-8"
        ).with_headers(dict(error.headers))

    def _is_exempt(self, path: str) -> bool:
        for prefix in self._exempt:
            base = prefix.rstrip("/")
            if path == prefix or path == base or path.startswith(base + "/"):
                return True
        return False

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        if self._is_exempt(request.path):
            return await next(request)

        token = bearer_token(request)
        if token is None:
            return self._reject("Unauthorized")

        user = await invoke(self._verify, token)
        if not user:
            return self._reject("Invalid token")

        request.context.set(self._key, user)
        return await next(request)


def require_method(*methods: str) -> Middleware:
    """Build a middleware that answers 405 unless the method is listed.

    Listing ``GET`` also admits ``HEAD``, as the router does.

    Usage::

        app.add_middleware(require_method("GET"))
    """
    allowed = frozenset(m.upper() for m in methods)
    if "GET" in allowed:
        allowed |= {"HEAD"}
    allow_value = ", ".join(sorted(allowed))

    async def method_guard(request: Request, next: Next) -> AnyResponse:
        if request.method not in allowed:
            return (
                Response(body="Method Not Allowed", status=405, content_type="text/plain; charset=utf-8")
                .with_header("Allow", allow_value)
            )
        return await next(request)

    return method_guard
