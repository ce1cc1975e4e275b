"""Tern: isomorphic routing and edge configuration.

One route table drives three things: server-side request handling,
client-side navigation, and the declarative rule set an edge/CDN proxy
consumes.

Basic usage::

    from tern import Router, cache, from_client, from_server

    router = (
        Router()
        .get("/", from_client({"page": "Home"}))
        .get("/p/:id", cache(edge={"max_age_seconds": 300}), from_server(load_product))
        .fallback(from_client({"page": "404"}))
    )

    state = await router.run_all("/p/1")
    edge_config = router.create_edge_configuration()
"""

__version__ = "0.1.0-dev"
__all__ = [
    "CacheKeyError",
    "ConfigurationError",
    "Environment",
    "HTTPError",
    "HttpxUpstream",
    "PatternError",
    "ResponseSink",
    "RouteRequest",
    "Router",
    "RouterConfig",
    "ServiceWorkerBridge",
    "TernError",
    "UpstreamUnavailable",
    "cache",
    "compile_edge_configuration",
    "create_custom_cache_key",
    "from_client",
    "from_origin",
    "from_server",
    "handler",
    "proxy_upstream",
    "redirect_to",
    "use_environment",
]

_HANDLERS = ("cache", "from_client", "from_origin", "from_server", "handler", "proxy_upstream", "redirect_to")
_ERRORS = ("CacheKeyError", "ConfigurationError", "HTTPError", "PatternError", "TernError", "UpstreamUnavailable")


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import tern`` fast while providing a clean top-level API.
    """
    if name == "Router":
        from tern.routing.router import Router

        return Router

    if name == "RouterConfig":
        from tern.config import RouterConfig

        return RouterConfig

    if name in _HANDLERS:
        from tern import handlers as _handlers

        return getattr(_handlers, name)

    if name == "create_custom_cache_key":
        from tern.cache_key import create_custom_cache_key

        return create_custom_cache_key

    if name == "compile_edge_configuration":
        from tern.edge import compile_edge_configuration

        return compile_edge_configuration

    if name in ("Environment", "use_environment"):
        from tern import environment as _env

        return getattr(_env, name)

    if name == "RouteRequest":
        from tern.http.request import RouteRequest

        return RouteRequest

    if name == "ResponseSink":
        from tern.http.response import ResponseSink

        return ResponseSink

    if name == "ServiceWorkerBridge":
        from tern.client_cache import ServiceWorkerBridge

        return ServiceWorkerBridge

    if name == "HttpxUpstream":
        from tern.upstream import HttpxUpstream

        return HttpxUpstream

    if name in _ERRORS:
        from tern import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
