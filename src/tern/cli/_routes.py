"""``tern routes``: list registered routes.

Resolves an import string to a Router and prints the flattened route
table with method, pattern, and handler chain.
"""

import argparse
import sys

from tern.cli._resolve import resolve_router
from tern.handlers import HandlerSpec


def describe_handler(spec: HandlerSpec) -> str:
    name = spec.kind.value
    fn_name = getattr(spec.fn, "__name__", None)
    if fn_name is None or fn_name == "static":
        return name
    return f"{name}({fn_name})"


def run_routes(args: argparse.Namespace) -> None:
    """List registered routes for a router.

    Resolves ``args.app`` to a Router, freezes it, and prints a table of
    METHOD, PATTERN, and handler chain.
    """
    try:
        router = resolve_router(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    routes = router.routes
    if not routes:
        print("No routes registered.")
        return

    # Build rows: (method, pattern, handler chain)
    rows: list[tuple[str, str, str]] = [
        (route.method, route.source, ", ".join(describe_handler(h) for h in route.handlers)) for route in routes
    ]
    if router.fallback_handlers:
        rows.append(("*", "(fallback)", ", ".join(describe_handler(h) for h in router.fallback_handlers)))

    max_method = max(max(len(r[0]) for r in rows), 6)  # "METHOD" header
    max_pattern = max(max(len(r[1]) for r in rows), 7)  # "PATTERN" header

    fmt = f"{{:<{max_method}}}  {{:<{max_pattern}}}  {{}}"
    print(fmt.format("METHOD", "PATTERN", "HANDLERS"))
    sep_len = max_method + max_pattern + 4 + max((len(r[2]) for r in rows), default=0)
    print("-" * min(sep_len, 80))
    for method, pattern, chain in rows:
        print(fmt.format(method, pattern, chain))
