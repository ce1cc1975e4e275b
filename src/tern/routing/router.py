"""Router and dispatcher.

Routes are registered during setup through a fluent, chain-returning
API and frozen into an immutable, flattened table the first time the
router matches, runs, or compiles. After that the table is read-only
and safe to share across concurrent requests.

Per request the dispatcher walks ``MATCH -> EXECUTE_CHAIN -> (ERROR) ->
AFTER``. ``run()`` is an async generator yielding every intermediate
state; ``run_all()`` drains it and returns the last one.
"""

from __future__ import annotations

import logging
import threading
import traceback
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tern._internal.invoke import invoke
from tern._internal.types import ErrorHandler, Handler, Listener, State
from tern.cache_key import CustomCacheKey, create_custom_cache_key
from tern.config import RouterConfig
from tern.environment import Environment, current_environment
from tern.errors import ConfigurationError, HTTPError, UpstreamUnavailable
from tern.handlers import (
    CacheHandler,
    HandlerKind,
    HandlerSpec,
    OriginHandler,
    RedirectHandler,
    coerce_handler,
)
from tern.http.request import RouteRequest
from tern.http.response import ResponseSink
from tern.routing.pattern import Pattern, compile_pattern, join_patterns
from tern.routing.route import NavigationEvent, Route, Selection

if TYPE_CHECKING:
    from tern.client_cache import ClientCache
    from tern.routing.history import History, HistoryWatcher
    from tern.upstream import Upstream

logger = logging.getLogger("tern.router")

EVENTS = ("before", "after")
APP_SHELL_PATH = "/.app-shell"


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be frozen."""

    method: str
    pattern: Pattern
    handlers: tuple[HandlerSpec, ...]


@dataclass(slots=True)
class _Mount:
    """A sub-router mounted under a prefix."""

    prefix: str
    router: Router


def merge_state(state: Any, result: Any) -> Any:
    """Merge a handler result onto the running state without mutating it.

    Mappings are shallow-merged into a new dict, ``None`` leaves the state
    unchanged, and any other value replaces the state outright.
    """
    if result is None:
        return state
    if isinstance(result, Mapping):
        if isinstance(state, Mapping):
            return {**state, **result}
        return dict(result)
    return result


def default_error_state(error: BaseException, response: ResponseSink, env: Environment) -> State:
    """The reserved error-state shape used when no error handler is registered."""
    state: State = {
        "error": str(error),
        "stack": "".join(traceback.format_exception(error)),
    }
    if env is Environment.SERVER:
        state["loading"] = False
        state["page"] = "Error"
        response.status = error.status if isinstance(error, HTTPError) else 500
    return state


class Router:
    """Route table and handler-chain dispatcher.

    Usage::

        router = (
            Router()
            .get("/", from_client({"page": "Home"}))
            .get("/p/:id", cache(client=True), from_server(load_product))
            .use("/account", account_router)
            .fallback(from_client({"page": "404"}))
        )
        state = await router.run_all(RouteRequest.from_url("/p/1"))
    """

    __slots__ = (
        "_app_shell",
        "_entries",
        "_error_handler",
        "_fallback",
        "_freeze_lock",
        "_listeners",
        # Compiled state (populated by _freeze)
        "_table",
        "client_cache",
        "config",
        "upstream",
    )

    def __init__(
        self,
        config: RouterConfig | None = None,
        *,
        upstream: Upstream | None = None,
        client_cache: ClientCache | None = None,
    ) -> None:
        self.config: RouterConfig = config or RouterConfig()
        self.upstream = upstream
        self.client_cache = client_cache
        self._entries: list[_PendingRoute | _Mount] = []
        self._fallback: tuple[HandlerSpec, ...] = ()
        self._error_handler: ErrorHandler | None = None
        self._listeners: dict[str, list[Listener]] = {event: [] for event in EVENTS}
        self._app_shell = False
        self._table: tuple[Route, ...] | None = None
        self._freeze_lock = threading.Lock()

    # -- Registration --

    def route(self, method: str, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        """Register *handlers* for ``method pattern``. Returns the router."""
        self._check_not_frozen()
        chain = _chain(pattern, handlers)
        self._entries.append(_PendingRoute(method.upper(), compile_pattern(pattern), chain))
        return self

    def get(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("GET", pattern, *handlers)

    def post(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("POST", pattern, *handlers)

    def put(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("PUT", pattern, *handlers)

    def patch(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("PATCH", pattern, *handlers)

    def delete(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("DELETE", pattern, *handlers)

    def options(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("OPTIONS", pattern, *handlers)

    def head(self, pattern: str, *handlers: HandlerSpec | Handler) -> Router:
        return self.route("HEAD", pattern, *handlers)

    def use(self, prefix: str, router: Router) -> Router:
        """Mount *router* under *prefix*; prefix params merge into its matches."""
        self._check_not_frozen()
        if router is self:
            msg = "A router cannot be mounted on itself."
            raise ConfigurationError(msg)
        compile_pattern(prefix)
        self._entries.append(_Mount(prefix, router))
        return self

    def fallback(self, *handlers: HandlerSpec | Handler) -> Router:
        """Chain to run when no route matches."""
        self._check_not_frozen()
        self._fallback = _chain("(fallback)", handlers)
        return self

    def error(self, fn: ErrorHandler) -> Router:
        """Error handler called as ``(error, params, request, response)``."""
        self._check_not_frozen()
        self._error_handler = fn
        return self

    def app_shell(self, *handlers: HandlerSpec | Handler) -> Router:
        """Register the chain that renders the offline app shell."""
        self._app_shell = True
        return self.get(APP_SHELL_PATH, *handlers)

    def is_app_shell_configured(self) -> bool:
        return self._app_shell

    def on(self, event: str, listener: Listener) -> Router:
        """Subscribe to ``before``/``after`` navigation events."""
        if event not in self._listeners:
            msg = f"Unknown router event {event!r}; expected one of {', '.join(EVENTS)}."
            raise ValueError(msg)
        self._listeners[event].append(listener)
        return self

    def emit(self, event: str, payload: NavigationEvent) -> None:
        for listener in list(self._listeners[event]):
            listener(payload)

    def configure_client_cache(self, options: Mapping[str, Any]) -> Router:
        """Forward *options* verbatim to the client cache bridge."""
        if self.client_cache is None:
            logger.debug("No client cache bridge configured; ignoring cache options")
        else:
            self.client_cache.configure_cache(options)
        return self

    def create_custom_cache_key(self) -> CustomCacheKey:
        return create_custom_cache_key()

    # -- Route table --

    @property
    def routes(self) -> tuple[Route, ...]:
        """The flattened route table, mounted routes included, in match order."""
        self._ensure_frozen()
        assert self._table is not None
        return self._table

    @property
    def fallback_handlers(self) -> tuple[HandlerSpec, ...]:
        return self._fallback

    def match(self, request: RouteRequest | Mapping[str, Any] | str) -> Selection | None:
        """Select the chain for *request* without running it.

        Scans routes in registration order; the first structural match
        for the request method wins. Falls back to the fallback chain, or
        returns ``None`` when there is none.
        """
        request = RouteRequest.coerce(request)
        method = request.method.upper()
        formats = self.config.formats
        for route in self.routes:
            if route.method != method:
                continue
            matched = route.pattern.match(request.path, formats)
            if matched is not None:
                return self._select(route, route.handlers, request, matched.params, matched.format, route.error_handler)
        if self._fallback:
            fmt = next((f for f in formats if request.path.endswith(f".{f}")), None)
            return self._select(None, self._fallback, request, {}, fmt, self._error_handler)
        return None

    def _select(
        self,
        route: Route | None,
        handlers: tuple[HandlerSpec, ...],
        request: RouteRequest,
        path_params: Mapping[str, Any],
        fmt: str | None,
        error_handler: ErrorHandler | None,
    ) -> Selection:
        params: dict[str, Any] = {**request.query.to_dict(), **path_params}
        if fmt is not None:
            params["format"] = fmt
        return Selection(
            route=route,
            handlers=handlers,
            request=request.with_match(path_params, fmt),
            params=params,
            error_handler=error_handler,
        )

    # -- Lookahead --

    def will_cache_on_client(self, request: RouteRequest | Mapping[str, Any] | str) -> bool:
        """True if the matching chain carries ``cache(client=True)``."""
        selection = self.match(request)
        if selection is None or selection.directive is None:
            return False
        return bool(selection.directive.client)

    def will_fetch_from_upstream(self, request: RouteRequest | Mapping[str, Any] | str) -> bool:
        """True if the matching chain proxies the upstream site."""
        selection = self.match(request)
        return selection is not None and selection.has_kind(HandlerKind.PROXY_UPSTREAM)

    def will_navigate_to_upstream(self, path: str) -> bool:
        """True if a client must leave the app (full page load) to reach *path*."""
        selection = self.match(path)
        return selection is not None and selection.has_kind(HandlerKind.PROXY_UPSTREAM, HandlerKind.FROM_ORIGIN)

    # -- Execution --

    async def run(
        self,
        request: RouteRequest | Mapping[str, Any] | str,
        response: ResponseSink | None = None,
        *,
        initial_state: Mapping[str, Any] | None = None,
        history_state: Mapping[str, Any] | None = None,
        environment: Environment | None = None,
    ) -> AsyncIterator[Any]:
        """Run the matching chain, yielding each intermediate state.

        Handlers run strictly in registration order, each awaited before
        the next starts. A consumer that stops iterating stops the chain:
        nothing past the last consumed state executes. Handler errors are
        recovered here and never propagate to the caller.
        """
        env = environment or current_environment()
        request = RouteRequest.coerce(request)
        response = response if response is not None else ResponseSink()
        state: Any = dict(initial_state) if initial_state else {}
        selection = self.match(request)

        if env is Environment.CLIENT:
            state = {**state, "loading": True, "location": request.location, **(history_state or {})}
            yield state

        if selection is None:
            logger.debug("No route for %s %s", request.method, request.path)
            if env is Environment.SERVER:
                response.status = 404
            state = merge_state(state, {"page": "404"})
            yield _settle(state, env)
            return

        directive = selection.directive
        if env is Environment.SERVER and directive is not None and directive.edge is not None:
            response.cache_at_edge(directive.edge.max_age_seconds, cookie_names=directive.cookie_whitelist)

        bound = selection.request
        data_formats = self.config.data_formats
        failure: Exception | None = None
        served_from_cache = False

        for spec in selection.handlers:
            if spec.run_on.after or not spec.eligible(env, bound.format, data_formats=data_formats, ssr=bound.ssr):
                continue
            try:
                result, cached = await self._execute(spec, selection, response)
            except Exception as exc:
                failure = exc
                break
            served_from_cache = served_from_cache or cached
            state = merge_state(state, result)
            yield state

        if failure is not None:
            state = merge_state(state, await self._recover(failure, selection, response, env))
            yield state

        settled = _settle(state, env)
        if settled is not state:
            state = settled
            yield state

        if failure is None and (
            env is Environment.CLIENT
            and directive is not None
            and directive.client
            and not served_from_cache
            and self.client_cache is not None
        ):
            self.client_cache.cache(request.url, state)

        for spec in selection.handlers:
            if not spec.run_on.after or not spec.eligible(env, bound.format, data_formats=data_formats, ssr=bound.ssr):
                continue
            try:
                result, _ = await self._execute(spec, selection, response)
            except Exception as exc:
                result = await self._recover(exc, selection, response, env)
            state = merge_state(state, result)
            yield state

    async def run_all(
        self,
        request: RouteRequest | Mapping[str, Any] | str,
        response: ResponseSink | None = None,
        *,
        initial_state: Mapping[str, Any] | None = None,
        history_state: Mapping[str, Any] | None = None,
        environment: Environment | None = None,
    ) -> Any:
        """Run the chain to completion and return the final merged state."""
        state: Any = dict(initial_state) if initial_state else {}
        async for state in self.run(
            request,
            response,
            initial_state=initial_state,
            history_state=history_state,
            environment=environment,
        ):
            pass
        return state

    async def fetch_fresh_state(self, location: Mapping[str, Any] | str) -> Any:
        """Run the route for a history location and return its final state."""
        return await self.run_all(RouteRequest.coerce(location))

    async def _execute(
        self,
        spec: HandlerSpec,
        selection: Selection,
        response: ResponseSink,
    ) -> tuple[Any, bool]:
        """Execute one step. Returns ``(result, served_from_cache)``."""
        params, request = selection.params, selection.request

        if isinstance(spec, RedirectHandler):
            assert spec.template is not None
            response.redirect(spec.template.render(params), spec.status or self.config.redirect_status)
            return None, False

        if isinstance(spec, OriginHandler):
            path = spec.rewrite.render(params) if spec.rewrite is not None else request.path
            backend = spec.backend or self.config.origin_backend
            return await self._proxy(backend, f"{path}{request.search}", request, response), False

        if spec.kind is HandlerKind.PROXY_UPSTREAM and spec.fn is None:
            return await self._proxy(self.config.origin_backend, request.url, request, response), False

        if spec.get_cached_response is not None and selection.directive is not None and selection.directive.client:
            cached = await invoke(spec.get_cached_response, request)
            if cached is not None:
                return cached, True

        assert spec.fn is not None
        return await invoke(spec.fn, params, request, response), False

    async def _proxy(self, backend: str, path: str, request: RouteRequest, response: ResponseSink) -> Any:
        if self.upstream is None:
            detail = f"Cannot proxy {request.method} {request.path} to {backend!r} without an upstream"
            raise UpstreamUnavailable(detail)
        return await invoke(self.upstream.proxy, backend, path, request, response)

    async def _recover(
        self,
        error: Exception,
        selection: Selection,
        response: ResponseSink,
        env: Environment,
    ) -> Any:
        request = selection.request
        if isinstance(error, HTTPError):
            response.status = error.status
        if isinstance(error, UpstreamUnavailable):
            logger.error("%s %s: %s", request.method, request.path, error.detail)
        else:
            logger.error("Handler failed for %s %s", request.method, request.path, exc_info=error)

        if selection.error_handler is not None:
            try:
                return await invoke(selection.error_handler, error, selection.params, request, response)
            except Exception as handler_error:
                logger.error("Error handler failed for %s %s", request.method, request.path, exc_info=handler_error)
        return default_error_state(error, response, env)

    # -- Client navigation --

    def watch(self, history: History, on_state_change: Callable[[Any, str], Any]) -> HistoryWatcher:
        """Track client navigation on *history*. See ``HistoryWatcher``."""
        from tern.routing.history import HistoryWatcher

        return HistoryWatcher(self, history, on_state_change)

    # -- Edge --

    def create_edge_configuration(self) -> dict[str, Any]:
        """Compile the route table into the edge platform's configuration."""
        from tern.edge import compile_edge_configuration

        return compile_edge_configuration(self)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._table is not None:
            return
        with self._freeze_lock:
            if self._table is not None:
                return
            self._table = tuple(self._flatten("", None))
            logger.debug("Router frozen with %d routes", len(self._table))

    def _flatten(self, prefix: str, inherited_error: ErrorHandler | None) -> list[Route]:
        error_handler = self._error_handler or inherited_error
        routes: list[Route] = []
        for entry in self._entries:
            if isinstance(entry, _Mount):
                entry.router._ensure_frozen()
                routes.extend(entry.router._flatten(join_patterns(prefix, entry.prefix), error_handler))
            else:
                pattern = compile_pattern(join_patterns(prefix, entry.pattern.source)) if prefix else entry.pattern
                routes.append(Route(entry.method, pattern, entry.handlers, error_handler))
        return routes

    def _check_not_frozen(self) -> None:
        if self._table is not None:
            msg = (
                "Cannot modify the router after it has started matching requests. "
                "Register routes, mounts, and fallbacks before the first run."
            )
            raise RuntimeError(msg)


def _chain(pattern: str, handlers: tuple[HandlerSpec | Handler, ...]) -> tuple[HandlerSpec, ...]:
    chain = tuple(coerce_handler(h) for h in handlers)
    if sum(isinstance(spec, CacheHandler) for spec in chain) > 1:
        msg = f"Route {pattern!r} declares more than one cache() directive."
        raise ConfigurationError(msg)
    return chain


def _settle(state: Any, env: Environment) -> Any:
    """On the client, a finished chain is no longer loading."""
    if env is Environment.CLIENT and isinstance(state, Mapping) and state.get("loading") is True:
        return {**state, "loading": False}
    return state
