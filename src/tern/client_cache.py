"""Client cache bridge.

The router never touches cache storage itself. It issues directives to a
``ClientCache`` collaborator, normally a service worker reached through
``postMessage``. ``ServiceWorkerBridge`` turns each directive into the
message the worker understands; delivering the message is the caller's
``post_message`` callable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from tern.routing.router import Router

logger = logging.getLogger("tern.client_cache")


class ClientCache(Protocol):
    def configure_cache(self, options: Mapping[str, Any]) -> None: ...

    def cache(self, path: str, data: Any = None) -> None: ...

    def abort_prefetches(self) -> None: ...

    def resume_prefetches(self) -> None: ...


class ServiceWorkerBridge:
    """Posts cache directives to a service worker.

    When bound to a router, ``cache()`` refuses paths that don't match a
    route carrying ``cache(client=True)``: caching pages like the cart
    would serve stale personal data.
    """

    __slots__ = ("api_version", "post_message", "router")

    def __init__(
        self,
        post_message: Callable[[dict[str, Any]], Any],
        *,
        router: Router | None = None,
        api_version: str | None = None,
    ) -> None:
        self.post_message = post_message
        self.router = router
        self.api_version = api_version

    def _send(self, message: dict[str, Any]) -> None:
        try:
            self.post_message(message)
        except Exception:
            logger.warning("Could not message service worker", exc_info=True)

    def configure_cache(self, options: Mapping[str, Any]) -> None:
        """Configure runtime caching (cache name, max entries, max age)."""
        self._send({"action": "configure-runtime-caching", "options": dict(options)})

    def cache(self, path: str, data: Any = None) -> None:
        """Cache *data* for *path*, or have the worker fetch and cache it."""
        if self.router is not None and not self.router.will_cache_on_client(_route_path(path)):
            logger.debug("Not caching %s: no client cache directive", path)
            return
        if data is not None:
            self._send({"action": "cache-state", "path": path, "apiVersion": self.api_version, "cacheData": data})
        else:
            self._send({"action": "cache-path", "path": path, "apiVersion": self.api_version})

    def abort_prefetches(self) -> None:
        self._send({"action": "abort-prefetches"})

    def resume_prefetches(self) -> None:
        self._send({"action": "resume-prefetches"})

    def remove_old_caches(self) -> None:
        """Drop runtime caches of other API versions."""
        if self.api_version is None:
            return
        self._send({"action": "remove-old-caches", "apiVersion": self.api_version})

    def prefetch(self, path: str) -> None:
        """Prefetch both the page and its JSON data."""
        self.cache(path)
        self.prefetch_json_for(path)

    def prefetch_json_for(self, path: str, include_ssr: bool = False) -> None:
        if not path:
            return
        self.cache(json_path(path))
        if include_ssr:
            self.cache(path)


def json_path(path: str) -> str:
    """Insert ``.json`` before the query string: ``/p/1?c=2`` -> ``/p/1.json?c=2``."""
    base, sep, query = path.partition("?")
    return f"{base}.json{sep}{query}"


def _route_path(path: str) -> str:
    if "://" not in path:
        return path
    parts = urlsplit(path)
    return f"{parts.path}?{parts.query}" if parts.query else parts.path
