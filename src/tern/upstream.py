"""Upstream proxy capability.

``from_origin()`` and bare ``proxy_upstream()`` handlers only describe a
proxy; physically proxying at runtime needs an ``Upstream`` injected
into the router. Without one those handlers fail the request with a 500.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from tern.errors import UpstreamUnavailable
from tern.http.cookies import forwarded_cookie_header
from tern.http.request import RouteRequest
from tern.http.response import ResponseSink

logger = logging.getLogger("tern.upstream")

FORWARDED_HEADERS = ("user-agent", "authorization", "x-forwarded-for")

# Headers describing the upstream transfer rather than the content
_HOP_BY_HOP = frozenset(
    {"connection", "content-encoding", "content-length", "keep-alive", "transfer-encoding"},
)


class Upstream(Protocol):
    async def proxy(self, backend: str, path: str, request: RouteRequest, response: ResponseSink) -> Any: ...


class HttpxUpstream:
    """Proxy requests to named backends with ``httpx.AsyncClient``.

    Usage::

        upstream = HttpxUpstream({"origin": "https://www.example.com"})
        router = Router(upstream=upstream)

    The upstream response's status, body, and headers are written into
    the response sink; ``set-cookie`` headers go through the sink's
    cached-route guard. Cookies are forwarded per the sink's policy.
    """

    __slots__ = ("backends", "client")

    def __init__(self, backends: Mapping[str, str], *, client: httpx.AsyncClient | None = None) -> None:
        self.backends = dict(backends)
        self.client = client

    def _outbound_headers(self, request: RouteRequest, response: ResponseSink) -> dict[str, str]:
        headers: dict[str, str] = {}
        for name in FORWARDED_HEADERS:
            value = request.header(name)
            if value is not None:
                headers[name] = value
        cookie = forwarded_cookie_header(request.header("cookie") or "", response.forward_cookies)
        if cookie is not None:
            headers["cookie"] = cookie
        return headers

    async def proxy(self, backend: str, path: str, request: RouteRequest, response: ResponseSink) -> None:
        base = self.backends.get(backend)
        if base is None:
            raise UpstreamUnavailable(f"No address configured for backend {backend!r}")

        url = f"{base.rstrip('/')}{path}"
        headers = self._outbound_headers(request, response)
        logger.debug("Proxying %s %s to %s", request.method, request.path, url)

        if self.client is not None:
            upstream = await self.client.request(request.method, url, headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                upstream = await client.request(request.method, url, headers=headers)

        response.status = upstream.status_code
        response.body = upstream.content
        for name, value in upstream.headers.multi_items():
            if name.lower() not in _HOP_BY_HOP:
                response.add_header(name, value)
