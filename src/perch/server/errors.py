"""Error handling pipeline for perch requests.

Maps ``HTTPError`` exceptions and unexpected failures to responses,
using registered error handlers or plain-text defaults.
"""

import html
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from kida import Environment

from perch._internal.invoke import invoke
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import AnyResponse, Response
from perch.server.negotiation import negotiate

logger = logging.getLogger("perch.server")

type ErrorHandlers = Mapping[int | type[Exception], Callable[..., Any]]


def _lookup(error_handlers: ErrorHandlers, exc: Exception, status: int) -> Callable[..., Any] | None:
    """Find a handler by exception type (walking the MRO), then by status."""
    for cls in type(exc).__mro__:
        handler = error_handlers.get(cls)
        if handler is not None:
            return handler
        if cls is Exception:
            break
    return error_handlers.get(status)


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    kida_env: Environment | None,
) -> AnyResponse:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc) args,
    and may be sync or async.
    """
    params = list(inspect.signature(handler).parameters.values())
    args = (request, exc)[: len(params)]
    result = await invoke(handler, *args)
    return negotiate(result, kida_env=kida_env)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: ErrorHandlers,
    kida_env: Environment | None,
) -> AnyResponse:
    """Map an ``HTTPError`` to a response."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = _lookup(error_handlers, exc, exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, kida_env)
        # Keep the error status unless the handler chose its own
        if response.status == 200:
            response = response.with_status(exc.status)
    else:
        response = Response(
            body=exc.detail or f"Error {exc.status}",
            status=exc.status,
            content_type="text/plain; charset=utf-8",
        )

    for name, value in exc.headers:
        if response.header(name) is None:
            response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: ErrorHandlers,
    kida_env: Environment | None,
    debug: bool,
) -> AnyResponse:
    """Handle unexpected exceptions as 500 errors.

    In debug mode the body names the exception (HTML-escaped); otherwise
    it is a bare "Internal Server Error".
    """
    logger.exception("500 %s %s", request.method, request.path)

    handler = _lookup(error_handlers, exc, 500)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, kida_env)
        if response.status == 200:
            response = response.with_status(500)
        return response

    if debug:
        summary = html.escape(f"{type(exc).__name__}: {exc}")
        body = f"<h1>500 Internal Server Error</h1>\n<pre>{summary}</pre>"
        return Response(body=body, status=500)

    return Response(body="Internal Server Error", status=500, content_type="text/plain; charset=utf-8")
