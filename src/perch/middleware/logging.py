"""Request logging middleware.

Logs one line per request on the ``perch.access`` logger::

    GET /books/dune/page/10 200 1.3ms

Failures raised by inner handlers are logged with their type and then
re-raised so the server's error pipeline still turns them into a 500.
"""

import logging
import time

from perch.http.request import Request
from perch.middleware.protocol import AnyResponse, Next

logger = logging.getLogger("perch.access")


class RequestLogging:
    """Log method, path, status and duration of every request.

    Usage::

        app.add_middleware(RequestLogging())
        app.add_middleware(RequestLogging(logging.getLogger("myapp"), level=logging.DEBUG))
    """

    __slots__ = ("_level", "_logger")

    def __init__(self, log: logging.Logger | None = None, *, level: int = logging.INFO) -> None:
        self._logger = log or logger
        self._level = level

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        start = time.perf_counter()
        try:
            response = await next(request)
        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self._logger.warning(
                "%s %s failed after %.1fms: %s",
                request.method,
                request.path,
                elapsed,
                type(exc).__name__,
            )
            raise
        elapsed = (time.perf_counter() - start) * 1000
        self._logger.log(
            self._level,
            "%s %s %d %.1fms",
            request.method,
            request.path,
            response.status,
            elapsed,
        )
        return response


async def log_path(request: Request, next: Next) -> AnyResponse:
    """Function-style middleware: log the request path, then continue."""
    logger.info("%s", request.path)
    return await next(request)
