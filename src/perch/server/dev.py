"""Development server.

Starts a pounce ASGI server with the live perch App object.
"""


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    app_path: str | None = None,
) -> None:
    """Start a single-worker pounce server with the given App.

    Pounce's ``run()`` takes an import string (e.g., ``"myapp:app"``),
    but perch has a live ``App`` object, so ``pounce.Server`` is used
    directly with the ASGI callable.

    Args:
        app: ASGI callable (perch App instance).
        host: Bind host address.
        port: Bind port number.
        reload: Restart on source changes (debug mode).
        app_path: Optional ``"module:attribute"`` import string. When
            provided, pounce reimports the app on each reload cycle.

    Raises ``OSError`` when the address cannot be bound.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(host=host, port=port, workers=1, reload=reload)
    Server(config, app, app_path=app_path).run()
