"""Edge configuration compiler.

Walks a frozen route table and emits the declarative rule set consumed
by the edge platform. The compiler only reads adapter metadata; handler
bodies never run, so the output is a pure function of the route table.

Output shape (field names and ordering are a wire contract)::

    {
        "router": [{"notes", "path_regex", "proxy" | "redirect"}, ...],
        "backends": {name: {"response_router": [{"notes", "path_regex", "ttl"}]}},
        "custom_cache_keys": [{"notes", "path_regex", **key_fields}, ...],
    }

Rules are emitted first-match order: platform bootstrap paths, then
every route with its ``.json``/``.amp`` variants ahead of the bare
pattern, then the catch-all fallback.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tern.config import RouterConfig
from tern.handlers import CacheDirective, HandlerSpec, OriginHandler, RedirectHandler
from tern.routing.pattern import compile_pattern
from tern.routing.route import Route, find_directive

if TYPE_CHECKING:
    from tern.routing.router import Router

logger = logging.getLogger("tern.edge")

FALLBACK_REGEX = "."


@dataclass(frozen=True, slots=True)
class _Rule:
    """One emitted path rule before serialization."""

    notes: str
    path_regex: str
    action: dict[str, Any]
    key_fields: dict[str, Any]


def _origin(handlers: Sequence[HandlerSpec]) -> OriginHandler | None:
    return next((h for h in handlers if isinstance(h, OriginHandler)), None)


def _redirect(handlers: Sequence[HandlerSpec]) -> RedirectHandler | None:
    return next((h for h in handlers if isinstance(h, RedirectHandler)), None)


class EdgeCompiler:
    """Compile one router's table. Use ``compile_edge_configuration()``."""

    __slots__ = ("_backends", "_rules", "config")

    def __init__(self, config: RouterConfig) -> None:
        self.config = config
        self._rules: list[_Rule] = []
        self._backends: dict[str, list[dict[str, str]]] = {}

    def compile(self, routes: Sequence[Route], fallback: Sequence[HandlerSpec]) -> dict[str, Any]:
        for path in self.config.bootstrap_paths:
            self._bootstrap(path)
        for route in routes:
            self._route(route)
        self._fallback(fallback)

        result = {
            "router": [{"notes": r.notes, "path_regex": r.path_regex, **r.action} for r in self._rules],
            "backends": {name: {"response_router": rules} for name, rules in self._backends.items()},
            "custom_cache_keys": [
                {"notes": r.notes, "path_regex": r.path_regex, **r.key_fields} for r in self._rules
            ],
        }
        logger.debug(
            "Compiled %d edge rules for %d routes (%d cached backends)",
            len(self._rules),
            len(routes),
            len(self._backends),
        )
        return result

    def _variants(self, source: str, *, always: bool = False) -> list[tuple[str, str]]:
        """``(notes_source, suffix)`` pairs: format variants first, then the bare pattern.

        A pattern that already fixes its own suffix only emits itself,
        unless *always* is set (bootstrap asset paths).
        """
        if not always and compile_pattern(source).has_suffix:
            return [(source, "")]
        return [(f"{source}.{fmt}", fmt) for fmt in self.config.formats] + [(source, "")]

    def _bootstrap(self, path: str) -> None:
        pattern = compile_pattern(path)
        action = {"proxy": {"backend": self.config.platform_backend}}
        for notes_source, suffix in self._variants(path, always=True):
            self._emit(notes_source, pattern.edge_regex(suffix), action, {})

    def _route(self, route: Route) -> None:
        pattern = route.pattern
        directive = route.directive
        action, backend = self._action(route.handlers, pattern.param_names)
        key_fields = _key_fields(directive)

        for notes_source, suffix in self._variants(pattern.source):
            path_regex = pattern.edge_regex(suffix)
            self._emit(notes_source, path_regex, action, key_fields)
            self._ttl(directive, backend, path_regex)

    def _fallback(self, handlers: Sequence[HandlerSpec]) -> None:
        action, backend = self._action(handlers, ())
        directive = find_directive(tuple(handlers))
        self._emit(self.config.fallback_notes, FALLBACK_REGEX, action, _key_fields(directive))
        self._ttl(directive, backend, FALLBACK_REGEX)

    def _action(
        self,
        handlers: Sequence[HandlerSpec],
        param_names: Sequence[str],
    ) -> tuple[dict[str, Any], str | None]:
        """The rule's directive, plus the origin backend it proxies to (if any)."""
        redirect = _redirect(handlers)
        if redirect is not None and redirect.template is not None:
            status = redirect.status or self.config.redirect_status
            return {"redirect": {"status": status, "rewrite_path_regex": redirect.template.to_edge(param_names)}}, None

        origin = _origin(handlers)
        if origin is not None:
            backend = origin.backend or self.config.origin_backend
            proxy: dict[str, str] = {"backend": backend}
            if origin.rewrite is not None:
                proxy["rewrite_path_regex"] = origin.rewrite.to_edge(param_names)
            return {"proxy": proxy}, backend

        return {"proxy": {"backend": self.config.platform_backend}}, None

    def _emit(self, notes_source: str, path_regex: str, action: dict[str, Any], key_fields: dict[str, Any]) -> None:
        self._rules.append(
            _Rule(
                notes=f"{self.config.notes_prefix}{notes_source}",
                path_regex=path_regex,
                action=action,
                key_fields=key_fields,
            ),
        )

    def _ttl(self, directive: CacheDirective | None, backend: str | None, path_regex: str) -> None:
        if backend is None or directive is None or directive.edge is None:
            return
        self._backends.setdefault(backend, []).append(
            {
                "notes": self.config.response_cache_notes,
                "path_regex": path_regex,
                "ttl": f"{directive.edge.max_age_seconds}s",
            },
        )


def _key_fields(directive: CacheDirective | None) -> dict[str, Any]:
    if directive is None or directive.edge is None or directive.edge.key is None:
        return {}
    return directive.edge.key.to_edge_fields()


def compile_edge_configuration(router: Router, config: RouterConfig | None = None) -> dict[str, Any]:
    """Compile *router* into the edge configuration artifact.

    Freezes the router. ``config`` overrides the router's own
    configuration for backend names and rule notes.
    """
    compiler = EdgeCompiler(config or router.config)
    return compiler.compile(router.routes, router.fallback_handlers)


def to_json(config: dict[str, Any], indent: int | None = 2) -> str:
    """Serialize a compiled configuration, preserving key order."""
    return json.dumps(config, indent=indent)
