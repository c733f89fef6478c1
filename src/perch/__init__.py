"""Perch: small, explicit HTTP server patterns.

Routing with ``{name}`` placeholders, an ordered middleware chain, a
per-request context store, autoescaped templates and safe static files.

Basic usage::

    from perch import App

    app = App()

    @app.route("/books/{title}/page/{page}")
    def read(title: str, page: int):
        return f"Reading page {page} of {title}"

    app.run()

Data access::

    from perch.data import Database
    db = Database("sqlite:///app.db")
    users = await db.fetch(User, "SELECT * FROM users")
"""

__version__ = "0.1.0"
__all__ = [
    "AnyResponse",
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "InlineTemplate",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "PerchError",
    "Redirect",
    "Request",
    "RequestContext",
    "Response",
    "StreamingResponse",
    "Template",
    "Unauthorized",
    "adapt",
    "get_value",
    "set_value",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Response", "Redirect", "StreamingResponse"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name in ("Template", "InlineTemplate"):
        from perch.templating import returns as _tmpl

        return getattr(_tmpl, name)

    if name in ("AnyResponse", "Middleware", "Next"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name == "adapt":
        from perch.middleware.chain import adapt

        return adapt

    if name in ("RequestContext", "get_value", "set_value"):
        from perch import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
        "Unauthorized",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
