"""``perch run``: start the server for an app."""

import argparse
import logging
import sys
from dataclasses import replace

from perch.cli._resolve import resolve_or_exit
from perch.config import parse_address

logger = logging.getLogger("perch.cli")


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app`` and serve it.

    ``--addr`` and ``--debug`` override the app's config. Logging is
    configured from the resulting ``log_level`` unless the root logger
    already has handlers.
    """
    app = resolve_or_exit(args)

    overrides: dict[str, object] = {}
    if args.addr is not None:
        try:
            host, port = parse_address(args.addr)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            raise SystemExit(2) from exc
        overrides.update(host=host, port=port)
    if args.debug:
        overrides.update(debug=True, log_level="debug")
    if overrides:
        app.config = replace(app.config, **overrides)

    logging.basicConfig(
        level=app.config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Resolved %s with config %r", args.app, app.config)

    app.run(app_path=args.app)
