"""Header injection middleware.

Adds a fixed set of headers to every response on its way out. Headers
the handler already set are left alone.
"""

from collections.abc import Mapping

from perch.http.request import Request
from perch.middleware.protocol import AnyResponse, Next

SECURITY_HEADERS: Mapping[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class DefaultHeaders:
    """Inject headers into every response.

    Usage::

        app.add_middleware(DefaultHeaders({"X-Served-By": "perch"}))
        app.add_middleware(DefaultHeaders(SECURITY_HEADERS))
    """

    __slots__ = ("_headers",)

    def __init__(self, headers: Mapping[str, str]) -> None:
        self._headers = tuple(headers.items())

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        response = await next(request)
        for name, value in self._headers:
            if response.header(name) is None:
                response = response.with_header(name, value)
        return response
