"""Perch CLI: serve an app or list its routes.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"
"""

import argparse
import logging
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    parser = argparse.ArgumentParser(
        prog="perch",
        description="Perch: small, explicit HTTP server patterns.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (debug, info, warning, error). Defaults to the app's config.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- perch run --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Start the server")
    run_parser.add_argument("app", help="Import string (e.g. myapp:app)")
    run_parser.add_argument(
        "--addr",
        default=None,
        help="Address to listen on, HOST:PORT or :PORT for all interfaces (e.g. :8081)",
    )
    run_parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug mode: detailed 500 pages and auto-reload",
    )

    # -- perch routes -----------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument("app", help="Import string (e.g. myapp:app)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.log_level is not None:
        logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "run":
        from perch.cli._run import run_server

        run_server(args)
    elif args.command == "routes":
        from perch.cli._routes import run_routes

        run_routes(args)
