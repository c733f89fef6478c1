"""``perch routes``: list registered routes."""

import argparse

from perch.cli._resolve import resolve_or_exit


def run_routes(args: argparse.Namespace) -> None:
    """Print a METHOD / PATH / HANDLER table in registration order."""
    app = resolve_or_exit(args)

    routes = app.routes
    if not routes:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str]] = []
    for route in routes:
        methods_str = ", ".join(sorted(route.methods))
        handler_name = getattr(route.handler, "__name__", str(route.handler))
        if route.name:
            handler_name = f"{handler_name} ({route.name})"
        rows.append((methods_str, route.path, handler_name))

    max_methods = max(6, *(len(r[0]) for r in rows))  # "METHOD" header
    max_path = max(4, *(len(r[1]) for r in rows))  # "PATH" header

    fmt = f"{{:<{max_methods}}}  {{:<{max_path}}}  {{}}"
    print(fmt.format("METHOD", "PATH", "HANDLER"))
    for methods_str, path, handler_name in rows:
        print(fmt.format(methods_str, path, handler_name))
