"""Perch exception hierarchy.

Shared across Router, App, handler, middleware, templating and the
request context so every module raises and catches the same types.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when app setup is invalid.

    Typically raised while registering routes or during ``App._freeze()``
    at startup, never while serving a request.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405 — route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )

    @property
    def allowed(self) -> frozenset[str]:
        """The methods the matched path does accept."""
        return frozenset(m.strip() for m in dict(self.headers)["Allow"].split(","))


class Unauthorized(HTTPError):  # noqa: N818
    """401 — the request carries no valid credentials."""

    def __init__(self, detail: str = "Unauthorized", realm: str = "perch") -> None:
        super().__init__(
            status=401,
            detail=detail,
            headers=(("WWW-Authenticate", f'Bearer realm="{realm}"'),),
        )


# -- Templates --


class TemplateError(PerchError):
    """Base for template loading and rendering failures."""


class TemplateLoadError(TemplateError):
    """Template source is malformed or the template file cannot be found."""


class TemplateRenderError(TemplateError):
    """Rendering failed against the supplied data (e.g. a missing field)."""


# -- Request context --


class ContextError(PerchError):
    """Base for request context misuse."""


class ContextLookupError(ContextError, KeyError):
    """A key was read from the request context but never set."""

    def __str__(self) -> str:
        return f"request context has no value for {self.args[0]!r}"


class ContextClosedError(ContextError):
    """The request context was used after the request completed."""
