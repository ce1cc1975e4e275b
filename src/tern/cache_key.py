"""Custom edge cache keys.

A fluent builder describing which request attributes the edge varies
its cache on. The builder only describes policy: nothing here touches a
live request. The edge compiler consumes ``build()`` output, and the
dispatcher reads the cookie whitelist to decide which cookies may still
be forwarded upstream on an edge-cached route.

Usage::

    key = (
        create_custom_cache_key()
        .add_header("user-agent")
        .exclude_query_parameters(["uid", "gclid"])
        .add_cookie("currency")
        .add_cookie("location", partitions={"na": "us|ca", "eur": "de|fr|ee"})
    )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from tern.errors import CacheKeyError

WHITELIST = "whitelist"
BLACKLIST = "blacklist"


@dataclass(frozen=True, slots=True)
class CookiePartition:
    """Cookie values matching ``pattern`` share the cache bucket ``partition``.

    ``pattern`` is an unanchored alternation fragment, passed through
    to the edge verbatim.
    """

    partition: str
    pattern: str

    def to_edge(self) -> dict[str, str]:
        return {"partition": self.partition, "partitioning_regex": self.pattern}


class _PendingPartition:
    __slots__ = ("_name", "_owner")

    def __init__(self, owner: CookiePartitioner, name: str) -> None:
        self._owner = owner
        self._name = name

    def by_pattern(self, pattern: str) -> CookiePartitioner:
        self._owner._record(self._name, pattern)
        return self._owner


class CookiePartitioner:
    """Collects partitions for one cookie.

    Passed to the ``partition_fn`` given to ``CustomCacheKey.add_cookie``::

        def by_region(cookie):
            cookie.partition("na").by_pattern("us|ca")
            cookie.partition("eur").by_pattern("de|fr|ee")
    """

    __slots__ = ("_open", "_partitions", "cookie")

    def __init__(self, cookie: str) -> None:
        self.cookie = cookie
        self._partitions: list[CookiePartition] = []
        self._open: list[str] = []

    def partition(self, name: str) -> _PendingPartition:
        if name in self._open or any(p.partition == name for p in self._partitions):
            msg = f"Cookie {self.cookie!r} declares partition {name!r} more than once."
            raise CacheKeyError(msg)
        self._open.append(name)
        return _PendingPartition(self, name)

    def _record(self, name: str, pattern: str) -> None:
        if not pattern:
            msg = f"Partition {name!r} of cookie {self.cookie!r} has an empty pattern."
            raise CacheKeyError(msg)
        self._open.remove(name)
        self._partitions.append(CookiePartition(name, pattern))

    def finish(self) -> tuple[CookiePartition, ...]:
        if self._open:
            names = ", ".join(repr(n) for n in self._open)
            msg = f"Partition(s) {names} of cookie {self.cookie!r} never called by_pattern()."
            raise CacheKeyError(msg)
        return tuple(self._partitions)


@dataclass(frozen=True, slots=True)
class CacheKeySpec:
    """Normalized output of ``CustomCacheKey.build()``.

    ``cookies`` maps each cookie name to ``None`` (value used verbatim)
    or its ordered partitions.
    """

    headers: tuple[str, ...] = ()
    cookies: Mapping[str, tuple[CookiePartition, ...] | None] = field(default_factory=dict)
    query_mode: str | None = None
    query_parameters: tuple[str, ...] = ()

    @property
    def cookie_names(self) -> tuple[str, ...]:
        return tuple(self.cookies)

    def to_edge_fields(self) -> dict[str, Any]:
        """Edge wire fields for this key. Empty directives are omitted."""
        fields: dict[str, Any] = {}
        if self.headers:
            fields["add_headers"] = list(self.headers)
        if self.cookies:
            fields["add_cookies"] = {
                name: None if partitions is None else [p.to_edge() for p in partitions]
                for name, partitions in self.cookies.items()
            }
        if self.query_mode is not None:
            fields["query_parameters_mode"] = self.query_mode
            fields["query_parameters_list"] = list(self.query_parameters)
        return fields


class CustomCacheKey:
    """Fluent builder for a composite edge cache key."""

    __slots__ = ("_cookies", "_headers", "_query_mode", "_query_parameters")

    def __init__(self) -> None:
        self._headers: list[str] = []
        self._cookies: dict[str, tuple[CookiePartition, ...] | None] = {}
        self._query_mode: str | None = None
        self._query_parameters: list[str] = []

    def add_header(self, name: str) -> CustomCacheKey:
        if name not in self._headers:
            self._headers.append(name)
        return self

    def add_cookie(
        self,
        name: str,
        partition_fn: Callable[[CookiePartitioner], Any] | None = None,
        *,
        partitions: Mapping[str, str] | None = None,
    ) -> CustomCacheKey:
        """Vary the cache on a cookie.

        Without partitions the cookie's raw value is part of the key.
        With ``partition_fn`` or ``partitions`` (name -> pattern), values
        are bucketed into named partitions, in declaration order.
        """
        if partition_fn is None and partitions is None:
            self._cookies[name] = None
            return self
        partitioner = CookiePartitioner(name)
        if partitions is not None:
            for partition, pattern in partitions.items():
                partitioner.partition(partition).by_pattern(pattern)
        if partition_fn is not None:
            partition_fn(partitioner)
        self._cookies[name] = partitioner.finish()
        return self

    def exclude_query_parameters(self, names: Iterable[str]) -> CustomCacheKey:
        """Ignore *names* in the query string; every other parameter varies the key."""
        return self._set_query(BLACKLIST, names)

    def include_query_parameters(self, names: Iterable[str]) -> CustomCacheKey:
        """Vary the key on *names* only; every other parameter is ignored."""
        return self._set_query(WHITELIST, names)

    def build(self) -> CacheKeySpec:
        return CacheKeySpec(
            headers=tuple(self._headers),
            cookies=dict(self._cookies),
            query_mode=self._query_mode,
            query_parameters=tuple(self._query_parameters),
        )

    def _set_query(self, mode: str, names: Iterable[str]) -> CustomCacheKey:
        if isinstance(names, str):
            names = [names]
        if self._query_mode not in (None, mode):
            msg = "A cache key cannot both include and exclude query parameters."
            raise CacheKeyError(msg)
        self._query_mode = mode
        for name in names:
            if name not in self._query_parameters:
                self._query_parameters.append(name)
        return self


def create_custom_cache_key() -> CustomCacheKey:
    """Start a new custom cache key."""
    return CustomCacheKey()
