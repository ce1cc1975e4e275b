"""Tern exception hierarchy.

Shared across the path matcher, handler adapters, Router, and edge
compiler so every module raises and catches the same types.
"""

from dataclasses import dataclass


class TernError(Exception):
    """Base for all tern-specific errors."""


class ConfigurationError(TernError):
    """Raised when the route table or one of its directives is invalid.

    Always raised at registration or compile time, never mid-request.
    """


class PatternError(ConfigurationError):
    """A path pattern or rewrite template could not be parsed."""

    def __init__(self, pattern: str, message: str, position: int | None = None) -> None:
        self.pattern = pattern
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid pattern {pattern!r}{where}: {message}")


class CacheKeyError(ConfigurationError):
    """A custom cache key is ambiguous or incomplete."""


@dataclass(frozen=True, slots=True)
class HTTPError(TernError):
    """An error that maps directly to a response status code.

    Raised by handlers; the dispatcher recovers it at the chain boundary
    and copies ``status`` onto the response sink.
    """

    status: int
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class UpstreamUnavailable(HTTPError):  # noqa: N818
    """500: an origin or upstream handler ran without a proxy capability.

    Physical proxying happens at the edge or through an injected
    ``Upstream``; anywhere else the request cannot be served.
    """

    def __init__(self, detail: str = "No upstream capability configured") -> None:
        super().__init__(status=500, detail=detail)
