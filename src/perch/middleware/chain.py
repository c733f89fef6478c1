"""Adapter chain — compose an ordered list of middleware into one handler.

Composition rule: the first middleware listed is the outermost wrapper.
For ``adapt(handler, a, b)`` a request flows::

    a (before) -> b (before) -> handler -> b (after) -> a (after)

The chain is folded right-to-left over the base handler once, when the
app freezes, so serving a request costs one call per middleware and no
rebuilding.
"""

from collections.abc import Sequence

from perch.http.request import Request
from perch.http.response import AnyResponse
from perch.middleware.protocol import Middleware, Next


def _link(middleware: Middleware, next_handler: Next) -> Next:
    async def call(request: Request) -> AnyResponse:
        return await middleware(request, next_handler)

    call.__qualname__ = f"adapt.<{getattr(middleware, '__name__', type(middleware).__name__)}>"
    return call


def adapt(handler: Next, *middleware: Middleware) -> Next:
    """Wrap *handler* with *middleware*, first listed outermost.

    With no middleware the handler is returned unchanged.
    """
    composed = handler
    for mw in reversed(middleware):
        composed = _link(mw, composed)
    return composed


def adapt_all(handler: Next, middleware: Sequence[Middleware]) -> Next:
    """``adapt`` for a prebuilt sequence (e.g. the app's middleware tuple)."""
    return adapt(handler, *middleware)
