"""Handler adapters: typed wrappers that make up a route's chain.

Each adapter wraps a function or static value into a ``HandlerSpec``
carrying environment gates (``RunOn``) and the metadata the dispatcher
and the edge compiler read::

    router.get(
        "/p/:id",
        cache(client=True, edge={"max_age_seconds": 300}),
        from_client({"page": "Product"}),
        from_server(load_product),
    )

Adapters only describe behavior. Origin proxying, redirects, and cache
directives are carried out by the dispatcher (at runtime) or by the edge
compiler (at deploy time), never by the adapter itself.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from tern._internal.invoke import invoke
from tern._internal.types import Handler
from tern.cache_key import CacheKeySpec, CustomCacheKey
from tern.environment import Environment
from tern.errors import ConfigurationError
from tern.routing.template import RewriteTemplate, parse_template


class HandlerKind(Enum):
    FROM_CLIENT = "fromClient"
    FROM_SERVER = "fromServer"
    FROM_ORIGIN = "fromOrigin"
    CACHE = "cache"
    REDIRECT = "redirect"
    PROXY_UPSTREAM = "proxyUpstream"
    RAW = "rawFunction"


@dataclass(frozen=True, slots=True)
class RunOn:
    """Where a handler may run.

    ``after`` handlers run once every other handler of the chain has
    finished, even if one of them failed.
    """

    server: bool = True
    client: bool = True
    after: bool = False

    def allows(self, env: Environment) -> bool:
        return self.client if env is Environment.CLIENT else self.server


SERVER_ONLY = RunOn(server=True, client=False)
CLIENT_ONLY = RunOn(server=False, client=True)


@dataclass(slots=True)
class HandlerSpec:
    """One step of a handler chain.

    ``get_cached_response`` is an optional capability of server handlers:
    on routes with ``cache(client=True)`` the dispatcher calls it with the
    request first, and a non-``None`` result replaces the handler's own
    result without invoking ``fn``.
    """

    kind: HandlerKind
    fn: Handler | None = None
    run_on: RunOn = field(default_factory=RunOn)
    get_cached_response: Callable[..., Any] | None = None

    @property
    def executable(self) -> bool:
        return self.kind is not HandlerKind.CACHE

    def eligible(self, env: Environment, request_format: str | None, *, data_formats: tuple[str, ...], ssr: bool) -> bool:
        """Whether this step runs for a request in *env*.

        Client handlers never run for data-only requests: re-rendering
        client view state for a ``.json`` fetch would clobber it.
        """
        if not self.executable or not self.run_on.allows(env):
            return False
        if self.kind is HandlerKind.FROM_CLIENT and request_format in data_formats and not ssr:
            return False
        return True


@dataclass(slots=True)
class OriginHandler(HandlerSpec):
    """Serve the route from a named origin backend."""

    backend: str | None = None
    rewrite: RewriteTemplate | None = None

    def transform_path(self, template: str) -> OriginHandler:
        """Rewrite the path sent to the origin, e.g. ``"/bar/{id}"``."""
        return replace(self, rewrite=parse_template(template))


@dataclass(slots=True)
class RedirectHandler(HandlerSpec):
    """Redirect to a templated path."""

    template: RewriteTemplate | None = None
    status: int | None = None

    def with_status(self, code: int) -> RedirectHandler:
        return replace(self, status=code)


@dataclass(frozen=True, slots=True)
class EdgeCache:
    """Edge caching policy for a route."""

    max_age_seconds: int
    key: CacheKeySpec | None = None


@dataclass(frozen=True, slots=True)
class CacheDirective:
    client: bool | None = None
    edge: EdgeCache | None = None

    @property
    def cookie_whitelist(self) -> tuple[str, ...]:
        """Cookies that may still be forwarded upstream on an edge-cached route."""
        if self.edge is None or self.edge.key is None:
            return ()
        return self.edge.key.cookie_names


@dataclass(slots=True)
class CacheHandler(HandlerSpec):
    """Attach a cache directive to the route. Never executed."""

    directive: CacheDirective = field(default_factory=CacheDirective)


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


def _constant(value: Any) -> Handler:
    def static() -> Any:
        return value

    return static


def _lazy(import_string: str) -> Handler:
    """Resolve a ``"module:attr"`` handler on first call."""
    module_path, _, attr_name = import_string.partition(":")
    if not module_path or not attr_name:
        msg = f"Handler import string {import_string!r} must look like 'module:attribute'."
        raise ConfigurationError(msg)
    resolved: list[Handler] = []

    async def lazy(*args: Any) -> Any:
        if not resolved:
            module = importlib.import_module(module_path)
            resolved.append(getattr(module, attr_name))
        return await invoke(resolved[0], *args)

    lazy.__name__ = import_string
    return lazy


def from_client(fn_or_value: Any) -> HandlerSpec:
    """Client-side step: a function or a static value merged into state.

    Skipped on the server and for data-only requests.
    """
    fn = fn_or_value if callable(fn_or_value) else _constant(fn_or_value)
    return HandlerSpec(kind=HandlerKind.FROM_CLIENT, fn=fn, run_on=CLIENT_ONLY)


def from_server(fn: Handler | str) -> HandlerSpec:
    """Server step. *fn* may be a callable or a ``"module:attr"`` import string."""
    handler = _lazy(fn) if isinstance(fn, str) else fn
    return HandlerSpec(kind=HandlerKind.FROM_SERVER, fn=handler, run_on=RunOn())


def from_origin(backend: str | None = None) -> OriginHandler:
    """Proxy the route to an origin backend (the configured origin by default)."""
    return OriginHandler(kind=HandlerKind.FROM_ORIGIN, run_on=SERVER_ONLY, backend=backend)


def proxy_upstream(fn: Handler | None = None) -> HandlerSpec:
    """Fetch the page from the upstream site, optionally through *fn*.

    Clients navigating to such a route must do a full page load.
    """
    return HandlerSpec(kind=HandlerKind.PROXY_UPSTREAM, fn=fn, run_on=SERVER_ONLY)


def redirect_to(template: str) -> RedirectHandler:
    """Redirect to *template*; ``{name}`` placeholders take route params."""
    return RedirectHandler(kind=HandlerKind.REDIRECT, template=parse_template(template))


def cache(
    *,
    client: bool | None = None,
    edge: EdgeCache | Mapping[str, Any] | None = None,
) -> CacheHandler:
    """Cache directive for the route.

    ``edge`` accepts an ``EdgeCache`` or a mapping with ``max_age_seconds``
    and an optional ``key`` (a ``CustomCacheKey`` or its built spec).
    """
    return CacheHandler(
        kind=HandlerKind.CACHE,
        run_on=RunOn(),
        directive=CacheDirective(client=client, edge=_edge_cache(edge)),
    )


def _edge_cache(edge: EdgeCache | Mapping[str, Any] | None) -> EdgeCache | None:
    if edge is None or isinstance(edge, EdgeCache):
        return edge
    if "max_age_seconds" not in edge:
        msg = "cache(edge=...) requires 'max_age_seconds'."
        raise ConfigurationError(msg)
    key = edge.get("key")
    if isinstance(key, CustomCacheKey):
        key = key.build()
    return EdgeCache(max_age_seconds=int(edge["max_age_seconds"]), key=key)


def handler(fn: Handler, *, server: bool = True, client: bool = True, after: bool = False) -> HandlerSpec:
    """Wrap a plain function with explicit environment gates."""
    return HandlerSpec(kind=HandlerKind.RAW, fn=fn, run_on=RunOn(server=server, client=client, after=after))


def coerce_handler(value: HandlerSpec | Handler) -> HandlerSpec:
    """Accept a spec as-is; wrap a plain callable as a raw handler."""
    if isinstance(value, HandlerSpec):
        return value
    if callable(value):
        return handler(value)
    msg = f"Route handlers must be callables or adapters, got {type(value).__name__}."
    raise ConfigurationError(msg)
