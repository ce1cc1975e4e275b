"""Client navigation watcher.

Bridges a synchronous history provider (``push``/``replace``/``listen``)
to the async dispatcher. The provider's listener only enqueues the
transition; a background task drains the queue and runs each navigation
to completion before starting the next, so navigations never interleave.

Usage::

    async with router.watch(history, on_state_change) as watcher:
        history.push("/search?q=shoes")
        await watcher.settled()
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

import anyio
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from tern._internal.invoke import invoke
from tern._internal.types import Location
from tern.environment import Environment
from tern.http.query import merge_search
from tern.http.request import RouteRequest
from tern.http.response import ResponseSink
from tern.routing.route import NavigationEvent

if TYPE_CHECKING:
    from tern.routing.router import Router

logger = logging.getLogger("tern.history")

PUSH = "PUSH"
POP = "POP"
REPLACE = "REPLACE"


class History(Protocol):
    """The history provider interface the watcher consumes."""

    @property
    def location(self) -> Location: ...

    def push(self, path: str, state: Any = None) -> None: ...

    def replace(self, path: str, state: Any = None) -> None: ...

    def listen(self, callback: Callable[[Location, str], None]) -> Callable[[], None]: ...


def same_location(a: Location | None, b: Location) -> bool:
    if a is None:
        return False
    return a.get("pathname") == b.get("pathname") and (a.get("search") or "") == (b.get("search") or "")


class HistoryWatcher:
    """Runs the router for every history transition.

    Constructing the watcher emits the ``before`` and ``after`` events
    once for the current location, flagged ``initial_load``; no handlers
    run until the location changes.
    """

    __slots__ = (
        "_idle",
        "_pending",
        "_previous",
        "_receive",
        "_send",
        "_task_group",
        "_unlisten",
        "history",
        "on_state_change",
        "router",
    )

    def __init__(self, router: Router, history: History, on_state_change: Callable[[Any, str], Any]) -> None:
        self.router = router
        self.history = history
        self.on_state_change = on_state_change
        self._previous: dict[str, Any] | None = dict(history.location)
        self._pending = 0
        self._idle: anyio.Condition | None = None
        self._send: MemoryObjectSendStream[tuple[dict[str, Any], str]] | None = None
        self._receive: MemoryObjectReceiveStream[tuple[dict[str, Any], str]] | None = None
        self._task_group: TaskGroup | None = None
        self._unlisten: Callable[[], None] | None = None

        initial = NavigationEvent(location=dict(history.location), initial_load=True)
        router.emit("before", initial)
        router.emit("after", initial)

    async def __aenter__(self) -> HistoryWatcher:
        self._idle = anyio.Condition()
        self._send, self._receive = anyio.create_memory_object_stream(math.inf)
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        self._task_group.start_soon(self._drain, self._receive)
        self._unlisten = self.history.listen(self._on_transition)
        return self

    async def __aexit__(self, *exc_info: object) -> bool | None:
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None
        assert self._send is not None and self._task_group is not None
        self._send.close()
        return await self._task_group.__aexit__(*exc_info)

    def _on_transition(self, location: Location, action: str) -> None:
        if self._send is None:
            return
        self._pending += 1
        self._send.send_nowait((dict(location), action))

    async def _drain(self, receive: MemoryObjectReceiveStream[tuple[dict[str, Any], str]]) -> None:
        assert self._idle is not None
        async with receive:
            async for location, action in receive:
                try:
                    await self.navigate(location, action)
                except Exception:
                    logger.exception("Navigation to %s failed", location.get("pathname"))
                finally:
                    self._pending -= 1
                    async with self._idle:
                        self._idle.notify_all()

    async def settled(self) -> None:
        """Wait until every queued transition has been processed."""
        if self._idle is None:
            return
        async with self._idle:
            while self._pending:
                await self._idle.wait()

    async def navigate(self, location: Location, action: str) -> None:
        """Process one history transition."""
        location = dict(location)
        previous, self._previous = self._previous, location
        if same_location(previous, location):
            logger.debug("Skipping navigation to the current location %s", location.get("pathname"))
            return

        event = NavigationEvent(location=location, action=action)
        self.router.emit("before", event)
        stored = location.get("state")

        if action == POP and stored:
            await invoke(self.on_state_change, stored, action)
        else:
            await self._run(location, action, stored if isinstance(stored, Mapping) else None)

        self.router.emit("after", event)

    async def _run(self, location: dict[str, Any], action: str, history_state: Mapping[str, Any] | None) -> None:
        config = self.router.config
        request = RouteRequest.coerce(
            {"hostname": config.hostname, "port": config.port, "protocol": config.protocol, **location},
        )
        response = ResponseSink()
        bridge = self.router.client_cache
        if bridge is not None:
            bridge.abort_prefetches()
        try:
            async for state in self.router.run(
                request,
                response,
                history_state=history_state,
                environment=Environment.CLIENT,
            ):
                await invoke(self.on_state_change, state, action)
        finally:
            if bridge is not None:
                bridge.resume_prefetches()

        if response.redirect_to is not None:
            logger.debug("Client redirect from %s to %s", request.path, response.redirect_to)
            self.history.replace(response.redirect_to)

    def apply_search(self, params: Mapping[str, Any]) -> None:
        """Merge *params* into the current query string and push the result."""
        current = self.history.location
        search = merge_search(current.get("search") or "", params)
        self.history.push(f"{current.get('pathname') or '/'}{search}")
