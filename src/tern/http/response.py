"""Per-request response sink.

The sink is mutated in place by the handlers of one request: later
handlers see the status, headers, and cache flags set by earlier ones.
A sink must never be shared across requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger("tern.response")


@dataclass(frozen=True, slots=True)
class CacheMetadata:
    """Cache lifetimes destined for the edge layer."""

    browser_max_age: int = 0
    server_max_age: int = 0

    @property
    def cache_control(self) -> str:
        """Render as a ``Cache-Control`` header value."""
        return f"max-age={self.browser_max_age}, s-maxage={self.server_max_age}"


@dataclass(slots=True)
class ResponseSink:
    """Mutable response state for a single request.

    ``forward_cookies`` is the upstream cookie policy: ``True`` forwards
    every inbound cookie, ``False`` none, and a tuple of names only those
    cookies a custom cache key varies on.
    """

    status: int = 200
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: str | bytes = ""
    cache: CacheMetadata | None = None
    forward_cookies: bool | tuple[str, ...] = True
    redirect_to: str | None = None

    @property
    def edge_cached(self) -> bool:
        return self.cache is not None

    def set_status(self, status: int) -> ResponseSink:
        self.status = status
        return self

    def set_header(self, name: str, value: str) -> ResponseSink:
        """Replace every value of *name* with *value*."""
        if self._refuses(name):
            return self
        lowered = name.lower()
        self.headers = [(k, v) for k, v in self.headers if k.lower() != lowered]
        self.headers.append((name, value))
        return self

    def add_header(self, name: str, value: str) -> ResponseSink:
        """Append a value for *name*, keeping existing ones."""
        if self._refuses(name):
            return self
        self.headers.append((name, value))
        return self

    def get_header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def redirect(self, url: str, status: int = 301) -> ResponseSink:
        self.redirect_to = url
        self.status = status
        return self.set_header("Location", url)

    def cache_at_edge(
        self,
        max_age_seconds: int,
        *,
        cookie_names: tuple[str, ...] = (),
    ) -> ResponseSink:
        """Mark the response as edge-cacheable.

        Cookies stop being forwarded upstream unless the cache key
        whitelists them by name.
        """
        self.cache = CacheMetadata(browser_max_age=0, server_max_age=max_age_seconds)
        self.forward_cookies = cookie_names or False
        return self

    def _refuses(self, name: str) -> bool:
        if name.lower() == "set-cookie" and self.cache is not None:
            logger.warning("Cannot set cookies on cached route")
            return True
        return False
