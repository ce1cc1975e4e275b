"""Runtime environment selection.

The same route table runs on the server and in the client. Each handler
declares where it may run; the dispatcher checks that declaration
against the environment of the current run.

Resolution order for ``current_environment()``:

1. ``use_environment()``: task-local override (ContextVar)
2. ``TERN_RUNTIME`` environment variable (``server`` / ``client``)
3. ``Environment.SERVER``
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum


class Environment(Enum):
    SERVER = "server"
    CLIENT = "client"


environment_var: ContextVar[Environment | None] = ContextVar("tern_environment", default=None)
"""Task-local environment override. Set via ``use_environment()``."""


def current_environment() -> Environment:
    """Return the environment handler chains run in by default."""
    env = environment_var.get()
    if env is not None:
        return env
    runtime = os.environ.get("TERN_RUNTIME", "").strip().lower()
    if runtime == Environment.CLIENT.value:
        return Environment.CLIENT
    return Environment.SERVER


@contextmanager
def use_environment(env: Environment) -> Iterator[Environment]:
    """Run the enclosed block as if in *env*.

    Usage::

        with use_environment(Environment.CLIENT):
            state = await router.run_all(request)
    """
    token = environment_var.set(env)
    try:
        yield env
    finally:
        environment_var.reset(token)
