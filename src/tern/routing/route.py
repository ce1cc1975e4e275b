"""Route, Selection, and NavigationEvent frozen dataclasses."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tern._internal.types import ErrorHandler
from tern.handlers import CacheDirective, CacheHandler, HandlerKind, HandlerSpec
from tern.http.request import RouteRequest
from tern.routing.pattern import Pattern


def find_directive(handlers: tuple[HandlerSpec, ...]) -> CacheDirective | None:
    """Return the chain's cache directive, if it declares one."""
    for spec in handlers:
        if isinstance(spec, CacheHandler):
            return spec.directive
    return None


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route: method + compiled pattern + handler chain.

    Mounted sub-router routes are flattened into the parent's table with
    their prefix already composed into ``pattern``.
    """

    method: str
    pattern: Pattern
    handlers: tuple[HandlerSpec, ...]
    error_handler: ErrorHandler | None = None

    @property
    def source(self) -> str:
        return self.pattern.source

    @property
    def directive(self) -> CacheDirective | None:
        return find_directive(self.handlers)

    def has_kind(self, *kinds: HandlerKind) -> bool:
        return any(spec.kind in kinds for spec in self.handlers)


@dataclass(frozen=True, slots=True)
class Selection:
    """Result of matching a request: the chain to run and its inputs.

    ``route`` is ``None`` when the router's fallback chain was selected.
    ``params`` is what handlers receive: query parameters, then path
    parameters, then ``format`` when the request has one.
    """

    route: Route | None
    handlers: tuple[HandlerSpec, ...]
    request: RouteRequest
    params: Mapping[str, Any]
    error_handler: ErrorHandler | None = None

    @property
    def is_fallback(self) -> bool:
        return self.route is None

    @property
    def directive(self) -> CacheDirective | None:
        return find_directive(self.handlers)

    def has_kind(self, *kinds: HandlerKind) -> bool:
        return any(spec.kind in kinds for spec in self.handlers)


@dataclass(frozen=True, slots=True)
class NavigationEvent:
    """Payload of the ``before`` and ``after`` lifecycle events."""

    location: Mapping[str, Any]
    action: str | None = None
    initial_load: bool = False
