"""Immutable query string parameters.

Implements ``Mapping[str, str]`` plus helpers for turning a search string
into handler params and for merging new params into a search string.
"""

from collections.abc import Iterator, Mapping
from typing import Any
from urllib.parse import parse_qs, urlencode


class QueryParams(Mapping[str, str]):
    """Immutable query string parameters.

    ``__getitem__`` returns the first value for a key.
    ``get_list`` returns all values for a key.
    """

    _data: dict[str, list[str]]
    _raw: str

    __slots__ = ("_data", "_raw")

    def __init__(self, search: str = "") -> None:
        raw = search[1:] if search.startswith("?") else search
        object.__setattr__(self, "_raw", raw)
        object.__setattr__(self, "_data", parse_qs(raw, keep_blank_values=True))

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"QueryParams({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return list(self._data.get(key, []))

    def to_dict(self) -> dict[str, str | list[str]]:
        """Flatten to handler params: one value as ``str``, repeats as ``list``."""
        return {k: v[0] if len(v) == 1 else list(v) for k, v in self._data.items()}


def merge_search(search: str, updates: Mapping[str, Any]) -> str:
    """Return *search* with *updates* applied, keeping existing key order.

    Keys already present are replaced in place; new keys are appended.
    Sequence values become repeated keys. Returns ``""`` for an empty
    result, otherwise a string starting with ``?``.
    """
    current = QueryParams(search)
    merged: dict[str, Any] = {k: current.get_list(k) for k in current}
    for key, value in updates.items():
        merged[key] = list(value) if isinstance(value, (list, tuple)) else [value]
    encoded = urlencode([(k, v) for k, values in merged.items() for v in values])
    return f"?{encoded}" if encoded else ""
