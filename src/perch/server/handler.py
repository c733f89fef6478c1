"""ASGI handler: translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Creates the request
and its context, runs the pre-composed middleware chain, maps failures
to error responses, sends the result, and finally closes the context.
"""

import inspect
from collections.abc import Callable
from typing import Any

from kida import Environment

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.context import RequestContext
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import AnyResponse
from perch.middleware.chain import adapt_all
from perch.middleware.protocol import Middleware, Next
from perch.routing.route import RouteMatch
from perch.routing.router import Router
from perch.server.errors import ErrorHandlers, handle_http_error, handle_internal_error
from perch.server.negotiation import negotiate
from perch.server.sender import send_any


def build_pipeline(
    router: Router,
    middleware: tuple[Middleware, ...],
    *,
    kida_env: Environment | None = None,
) -> Next:
    """Compose the app's middleware around router dispatch.

    Called once when the app freezes; the result serves every request.
    """

    async def dispatch(request: Request) -> AnyResponse:
        match = router.dispatch(request.path, request.method)
        return await _invoke_handler(match, request, kida_env=kida_env)

    return adapt_all(dispatch, middleware)


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: Next,
    error_handlers: ErrorHandlers,
    kida_env: Environment | None = None,
    debug: bool = False,
    max_body_size: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline.

    The request context is closed after the response has been sent,
    whether the handler succeeded or raised, and even if sending fails.
    """
    if scope["type"] != "http":
        return

    context = RequestContext()
    request = Request.from_asgi(scope, receive, context=context, max_body_size=max_body_size)
    try:
        try:
            response = await pipeline(request)
        except HTTPError as exc:
            response = await handle_http_error(exc, request, error_handlers, kida_env)
        except Exception as exc:
            response = await handle_internal_error(exc, request, error_handlers, kida_env, debug)

        await send_any(response, send, head=request.method == "HEAD")
    finally:
        await context.aclose()


async def _invoke_handler(
    match: RouteMatch,
    request: Request,
    *,
    kida_env: Environment | None = None,
) -> AnyResponse:
    """Call the matched route handler, converting path params and return value."""
    handler = match.handler
    request = request.with_path_params(match.path_params)
    kwargs = _build_handler_kwargs(handler, request, match.path_params)
    result = await invoke(handler, **kwargs)
    return negotiate(result, kida_env=kida_env)


def _build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    path_params: dict[str, str],
) -> dict[str, Any]:
    """Inspect handler signature and build kwargs from request + path params.

    Resolution order:
    1. ``request`` parameter (by name or ``Request`` annotation)
    2. Path parameters (by name, converted to the annotated type if possible)
    """
    sig = inspect.signature(handler, eval_str=True)
    kwargs: dict[str, Any] = {}

    for name, param in sig.parameters.items():
        if name == "request" or param.annotation is Request:
            kwargs[name] = request
        elif name in path_params:
            value = path_params[name]
            if param.annotation is not inspect.Parameter.empty:
                try:
                    kwargs[name] = param.annotation(value)
                except (ValueError, TypeError):
                    kwargs[name] = value
            else:
                kwargs[name] = value

    return kwargs
