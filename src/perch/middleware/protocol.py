"""The adapter shape every perch middleware follows.

An adapter receives the request and ``next``, the rest of the chain
already composed into one callable. It may act before calling ``next``,
after it returns, or answer on its own without calling it at all::

    async def timing(request: Request, next: Next) -> AnyResponse:
        start = time.perf_counter()
        response = await next(request)
        return response.with_header("X-Elapsed", f"{time.perf_counter() - start:.4f}")

Plain functions and objects with ``__call__`` both qualify; nothing has
to subclass anything.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from perch.http.request import Request
from perch.http.response import AnyResponse

# A composed handler: what ``next`` is, and what ``adapt`` returns
type Next = Callable[[Request], Awaitable[AnyResponse]]


class Middleware(Protocol):
    """``async (request, next) -> response``.

    Call ``next`` at most once. Release anything acquired before the
    call in ``try``/``finally``, or register it on ``request.context``.
    """

    async def __call__(self, request: Request, next: Next) -> AnyResponse: ...
