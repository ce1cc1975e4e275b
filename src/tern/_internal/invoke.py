"""Invoke helpers: call sync or async handlers uniformly.

Tern handlers can be ``def`` or ``async def`` and may accept any prefix
of the dispatcher's positional arguments. This module provides a single
helper so the sync/async check and the arity check live in exactly one
place.

Usage::

    from tern._internal.invoke import invoke

    result = await invoke(handler, params, request, response)
"""

import inspect
from functools import lru_cache
from typing import Any


@lru_cache(maxsize=1024)
def _positional_arity(handler: Any) -> int | None:
    """Return how many positional arguments *handler* accepts.

    ``None`` means unlimited (``*args``) or unknown (builtins, C callables).
    """
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
    return count


def _arity(handler: Any) -> int | None:
    try:
        return _positional_arity(handler)
    except TypeError:
        # Unhashable callables skip the cache
        return _positional_arity.__wrapped__(handler)


async def invoke(handler: Any, *args: Any) -> Any:
    """Call a handler with as many positional args as it accepts.

    Works with both sync and async callables::

        # sync, returns immediately
        router.get("/c/:id", lambda params: {"id": params["id"]})

        # async, awaited automatically
        async def product(params, request):
            return await load_product(params["id"])
    """
    arity = _arity(handler)
    if arity is not None:
        args = args[:arity]
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
