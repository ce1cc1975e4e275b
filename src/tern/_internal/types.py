"""Shared type aliases used across tern modules."""

from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

# Route handler: user-defined function called as (params, request, response)
Handler: TypeAlias = Callable[..., Any]

# Error handler: called as (error, params, request, response)
ErrorHandler: TypeAlias = Callable[..., Any]

# Merged state produced by a handler chain
State: TypeAlias = dict[str, Any]

# History location as delivered by a history provider
Location: TypeAlias = Mapping[str, Any]

# Lifecycle listener registered with Router.on()
Listener: TypeAlias = Callable[..., Any]
