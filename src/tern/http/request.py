"""Inbound request as seen by the router.

Frozen dataclass. The dispatcher never mutates a request: matching
produces a new one carrying the extracted params and format via
``dataclasses.replace``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from tern.http.cookies import parse_cookies
from tern.http.query import QueryParams


@dataclass(frozen=True, slots=True)
class RouteRequest:
    """An HTTP-like request to route.

    ``path`` never contains the query string; ``search`` is either empty
    or starts with ``?``. Use ``RouteRequest.from_url()`` to split a URL.
    """

    path: str
    search: str = ""
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    hostname: str = "localhost"
    port: str = ""
    protocol: str = "http"
    ssr: bool = False
    params: Mapping[str, Any] = field(default_factory=dict)
    format: str | None = None

    @classmethod
    def from_url(cls, url: str, method: str = "GET", **kwargs: Any) -> RouteRequest:
        """Build a request from a path with an optional query string.

        Usage::

            request = RouteRequest.from_url("/search?q=shoes", method="GET")
        """
        path, sep, query = url.partition("?")
        return cls(path=path or "/", search=f"?{query}" if sep and query else "", method=method, **kwargs)

    @classmethod
    def coerce(cls, value: RouteRequest | Mapping[str, Any] | str) -> RouteRequest:
        """Accept a request, a URL string, or a ``{path, search, ...}`` mapping."""
        if isinstance(value, RouteRequest):
            return value
        if isinstance(value, str):
            return cls.from_url(value)
        data = dict(value)
        path = data.pop("path", None) or data.pop("pathname", "/")
        data.pop("pathname", None)
        search = data.pop("search", "")
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "?" in path:
            request = cls.from_url(path, **known)
            return replace(request, search=search) if search else request
        return cls(path=path, search=search, **known)

    @property
    def pathname(self) -> str:
        return self.path

    @property
    def url(self) -> str:
        """Path plus search string."""
        return f"{self.path}{self.search}"

    @property
    def query(self) -> QueryParams:
        return QueryParams(self.search)

    @property
    def cookies(self) -> dict[str, str]:
        return parse_cookies(self.header("cookie") or "")

    @property
    def location(self) -> dict[str, str]:
        """The location shape yielded in the client loading state."""
        return {
            "pathname": self.path,
            "search": self.search,
            "hostname": self.hostname,
            "port": self.port,
            "protocol": self.protocol,
        }

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def with_match(self, params: Mapping[str, Any], format: str | None) -> RouteRequest:  # noqa: A002
        """Return a copy carrying the params and format of a route match."""
        return replace(self, params=dict(params), format=format)
