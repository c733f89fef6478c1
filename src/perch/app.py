"""Perch application class.

Mutable during setup (route registration, middleware, error handlers).
Frozen at runtime when app.run() or __call__() is first invoked.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from kida import Environment

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch._internal.types import ErrorHandler, Handler
from perch.config import AppConfig
from perch.data.database import Database
from perch.middleware.protocol import Middleware, Next
from perch.middleware.static import StaticFiles
from perch.routing.route import Route
from perch.routing.router import Router
from perch.server.handler import build_pipeline, handle_request
from perch.templating.integration import create_environment

logger = logging.getLogger("perch.server")


class App:
    """The perch application.

    Usage::

        app = App()

        @app.route("/books/{title}/page/{page}")
        def read(title: str, page: int):
            return f"Reading page {page} of {title}"

        app.add_middleware(RequestLogging())
        app.run()

    Routes go straight into the app's :class:`Router`, so a malformed or
    duplicate pattern fails at registration. Middleware run in the order
    they were added: the first added is the outermost.

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app, even when several ASGI workers call
        ``__call__()`` concurrently on first request.
    """

    __slots__ = (
        "_db",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_kida_env",
        "_middleware",
        "_middleware_list",
        # Compiled state (populated by _freeze)
        "_pipeline",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        db: Database | str | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._router = Router()
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type[Exception], ErrorHandler] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Database: connected at lifespan startup, closed at shutdown.
        self._db: Database | None = Database(db) if isinstance(db, str) else db

        # Compiled state, set during _freeze()
        self._middleware: tuple[Middleware, ...] = ()
        self._kida_env: Environment | None = None
        self._pipeline: Next | None = None

    # -- Route registration --

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: URL path pattern. Use ``{param}`` for placeholders and
                ``{param:int}`` for typed ones.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name for ``url_for()``.
        """

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._router.register(path, func, methods=methods or ("GET",), name=name)
            return func

        return decorator

    def url_for(self, name: str, /, **params: Any) -> str:
        """Build the path of the route registered as *name*."""
        return self._router.url_for(name, **params)

    @property
    def routes(self) -> list[Route]:
        return self._router.routes

    @property
    def db(self) -> Database:
        """The database passed to ``App(db=...)``."""
        if self._db is None:
            msg = "No database configured. Pass db= to App()."
            raise RuntimeError(msg)
        return self._db

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator.

        Usage::

            @app.error(404)
            def not_found(request: Request):
                return "Nothing here", 404
        """

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Append a middleware; earlier ones wrap later ones."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        """The composed middleware, outermost first (available once frozen)."""
        return self._middleware

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        after the database (if any) is connected.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown,
        before the database (if any) is disconnected.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None, *, app_path: str | None = None) -> None:
        """Compile the app and serve it with pounce.

        A failure to bind the address is logged and exits with status 1.
        """
        self._ensure_frozen()

        _host = host or self.config.host
        _port = port or self.config.port

        from perch.server.dev import run_dev_server

        logger.info("Serving on http://%s:%d", _host, _port)
        try:
            run_dev_server(self, _host, _port, reload=self.config.debug, app_path=app_path)
        except OSError as exc:
            logger.error("Cannot listen on %s:%d: %s", _host, _port, exc)
            raise SystemExit(1) from exc

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()

        assert self._pipeline is not None

        await handle_request(
            scope,
            receive,
            send,
            pipeline=self._pipeline,
            error_handlers=self._error_handlers,
            kida_env=self._kida_env,
            debug=self.config.debug,
            max_body_size=self.config.max_content_length,
        )

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        runs registered startup/shutdown hooks and signals completion
        back to the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    if self._db is not None:
                        await self._db.connect()
                    for hook in self._startup_hooks:
                        await invoke(hook)
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    await invoke(hook)
                if self._db is not None:
                    await self._db.disconnect()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Freeze the route table
        self._router.compile()

        # 2. Middleware; the static mount sits innermost, just before routing
        middleware = list(self._middleware_list)
        static_dir = self.config.static_dir
        if static_dir is not None and Path(static_dir).is_dir():
            middleware.append(StaticFiles(static_dir, self.config.static_url))
            logger.debug("Mounted %s at %s", static_dir, self.config.static_url)
        self._middleware = tuple(middleware)

        # 3. Template environment
        self._kida_env = create_environment(self.config)

        # 4. Compose the pipeline once
        self._pipeline = build_pipeline(self._router, self._middleware, kida_env=self._kida_env)

        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and error handlers before calling app.run()."
            )
            raise RuntimeError(msg)
