"""Tests for tern._internal.invoke: uniform sync/async calls."""

import functools

import pytest

from tern._internal.invoke import invoke


class TestInvoke:
    @pytest.mark.anyio
    async def test_sync(self) -> None:
        assert await invoke(lambda: 1, "params", "request") == 1

    @pytest.mark.anyio
    async def test_async(self) -> None:
        async def handler(params):
            return params["id"]

        assert await invoke(handler, {"id": "7"}, "request", "response") == "7"

    @pytest.mark.anyio
    async def test_trims_to_arity(self) -> None:
        def two(a, b):
            return (a, b)

        assert await invoke(two, 1, 2, 3) == (1, 2)

    @pytest.mark.anyio
    async def test_var_positional_gets_everything(self) -> None:
        def many(*args):
            return args

        assert await invoke(many, 1, 2, 3) == (1, 2, 3)

    @pytest.mark.anyio
    async def test_keyword_only_ignored(self) -> None:
        def handler(params, *, extra=None):
            return (params, extra)

        assert await invoke(handler, "p", "request") == ("p", None)

    @pytest.mark.anyio
    async def test_partial(self) -> None:
        def handler(prefix, params):
            return f"{prefix}{params}"

        assert await invoke(functools.partial(handler, "x-"), "p", "request") == "x-p"

    @pytest.mark.anyio
    async def test_bound_method(self) -> None:
        class Loader:
            def load(self, params, request):
                return request

        assert await invoke(Loader().load, "p", "r", "response") == "r"
