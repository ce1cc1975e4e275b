"""Client cache bridge that records directives instead of sending them."""

from collections.abc import Mapping
from typing import Any


class RecordingCacheBridge:
    """Implements ``ClientCache``; every call is appended to ``calls``.

    ``calls`` holds ``(method_name, args)`` tuples in call order.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def configure_cache(self, options: Mapping[str, Any]) -> None:
        self.calls.append(("configure_cache", (dict(options),)))

    def cache(self, path: str, data: Any = None) -> None:
        self.calls.append(("cache", (path, data)))

    def abort_prefetches(self) -> None:
        self.calls.append(("abort_prefetches", ()))

    def resume_prefetches(self) -> None:
        self.calls.append(("resume_prefetches", ()))

    def names(self) -> list[str]:
        """Method names in call order."""
        return [name for name, _ in self.calls]
