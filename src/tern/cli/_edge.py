"""``tern edge-config``: print the compiled edge configuration."""

import argparse
import sys
from pathlib import Path

from tern.cli._resolve import resolve_router
from tern.edge import compile_edge_configuration, to_json
from tern.errors import ConfigurationError


def run_edge_config(args: argparse.Namespace) -> None:
    """Compile ``args.app`` and write the JSON to stdout or ``args.output``."""
    try:
        router = resolve_router(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        config = compile_edge_configuration(router)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    text = to_json(config, indent=args.indent)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {len(config['router'])} edge rules to {args.output}")
    else:
        print(text)
