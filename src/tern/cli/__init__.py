"""Tern CLI: inspect a router and compile its edge configuration.

Entry point registered as ``tern`` in ``pyproject.toml``::

    [project.scripts]
    tern = "tern.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``tern`` command."""
    parser = argparse.ArgumentParser(
        prog="tern",
        description="Tern: isomorphic routing and edge configuration.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- tern edge-config -------------------------------------------------
    edge_parser = subparsers.add_parser("edge-config", help="Compile the edge configuration as JSON")
    edge_parser.add_argument(
        "app",
        help="Import string (e.g. myapp.routes:router)",
    )
    edge_parser.add_argument("--indent", type=int, default=2, help="JSON indentation (default: 2)")
    edge_parser.add_argument("--output", "-o", default=None, help="Write to a file instead of stdout")

    # -- tern routes ------------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument(
        "app",
        help="Import string (e.g. myapp.routes:router)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "edge-config":
        from tern.cli._edge import run_edge_config

        run_edge_config(args)
    elif args.command == "routes":
        from tern.cli._routes import run_routes

        run_routes(args)
