"""Path pattern compiler.

Pattern syntax::

    /products/:id            named parameter (one path segment)
    /products/:id(/:slug)    optional group, may be entirely absent
    /files/*path             splat, captures the rest of the path
    /users/:id.:format       dot-suffix format capture
    /users/:id.html          literal suffix

A pattern compiles once into two regular expressions: an anchored
runtime matcher used by the dispatcher, and an edge expression used by
the edge configuration compiler. Both are generated from the same token
tree so they can never disagree about parameter order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from tern.errors import PatternError

_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SUFFIX = re.compile(r"\.[A-Za-z0-9]+$")

# Characters escaped in edge expressions. The edge platform receives the
# same escaping a JavaScript ``escapeRegExp`` would produce.
_EDGE_SPECIAL = frozenset("\\^$.*+?()[]{}|")

EDGE_PARAM = r"([^/\?]+)"
EDGE_SPLAT = r"([^?]*?)"
EDGE_END = r"(?=\?|$)"


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


@dataclass(frozen=True, slots=True)
class Param:
    name: str


@dataclass(frozen=True, slots=True)
class Splat:
    name: str


@dataclass(frozen=True, slots=True)
class Group:
    children: tuple[Token, ...]


Token = Literal | Param | Splat | Group


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Result of a successful pattern match.

    Absent optional parameters are present in ``params`` with ``None``.
    """

    params: dict[str, str | None]
    format: str | None = None


def edge_escape(text: str) -> str:
    """Escape *text* for use inside an edge path expression."""
    return "".join(f"\\{ch}" if ch in _EDGE_SPECIAL else ch for ch in text)


def parse_pattern(source: str) -> tuple[Token, ...]:
    """Tokenize a pattern string.

    Raises ``PatternError`` on unbalanced groups, empty groups, missing
    parameter names, and duplicate parameter names.
    """
    if not source.startswith("/"):
        raise PatternError(source, "patterns must start with '/'", 0)

    stack: list[list[Token]] = [[]]
    opened: list[int] = []
    literal: list[str] = []

    def flush() -> None:
        if literal:
            stack[-1].append(Literal("".join(literal)))
            literal.clear()

    i = 0
    while i < len(source):
        ch = source[i]
        if ch == "(":
            flush()
            stack.append([])
            opened.append(i)
            i += 1
        elif ch == ")":
            if not opened:
                raise PatternError(source, "unbalanced ')'", i)
            flush()
            children = stack.pop()
            opened.pop()
            if not children:
                raise PatternError(source, "empty optional group", i)
            stack[-1].append(Group(tuple(children)))
            i += 1
        elif ch in ":*":
            m = _NAME.match(source, i + 1)
            if m is None and ch == ":":
                raise PatternError(source, "expected a parameter name after ':'", i)
            flush()
            name = m.group() if m else "splat"
            stack[-1].append(Param(name) if ch == ":" else Splat(name))
            i = m.end() if m else i + 1
        else:
            literal.append(ch)
            i += 1

    if opened:
        raise PatternError(source, "unbalanced '('", opened[-1])
    flush()

    tokens = tuple(stack[0])
    seen: set[str] = set()
    for name in _names(tokens):
        if name in seen:
            raise PatternError(source, f"duplicate parameter name {name!r}")
        seen.add(name)
    return tokens


def _names(tokens: tuple[Token, ...]) -> list[str]:
    names: list[str] = []
    for token in tokens:
        if isinstance(token, (Param, Splat)):
            names.append(token.name)
        elif isinstance(token, Group):
            names.extend(_names(token.children))
    return names


def _runtime_source(tokens: tuple[Token, ...]) -> str:
    parts: list[str] = []
    for token in tokens:
        if isinstance(token, Literal):
            parts.append(re.escape(token.text))
        elif isinstance(token, Param):
            parts.append(r"([^/]+)")
        elif isinstance(token, Splat):
            parts.append(r"(.*?)")
        else:
            parts.append(f"(?:{_runtime_source(token.children)})?")
    return "".join(parts)


def _edge_source(tokens: tuple[Token, ...]) -> str:
    parts: list[str] = []
    for token in tokens:
        if isinstance(token, Literal):
            parts.append(edge_escape(token.text))
        elif isinstance(token, Param):
            parts.append(EDGE_PARAM)
        elif isinstance(token, Splat):
            parts.append(EDGE_SPLAT)
        else:
            parts.append(f"(?:{_edge_source(token.children)})?")
    return "".join(parts)


@dataclass(frozen=True, slots=True)
class Pattern:
    """A compiled path pattern. Create with ``compile_pattern()``."""

    source: str
    tokens: tuple[Token, ...]
    param_names: tuple[str, ...]
    regex: re.Pattern[str]

    @property
    def has_suffix(self) -> bool:
        """True if the pattern already fixes a suffix (``.html``, ``.:format``)."""
        if not self.tokens:
            return False
        last = self.tokens[-1]
        if isinstance(last, Literal):
            segment = last.text.rsplit("/", 1)[-1]
            return bool(_SUFFIX.search(segment))
        if isinstance(last, Param) and len(self.tokens) > 1:
            before = self.tokens[-2]
            return isinstance(before, Literal) and before.text.endswith(".")
        return False

    def edge_regex(self, suffix: str = "") -> str:
        """Anchored edge expression, optionally for a ``.<suffix>`` variant."""
        tail = edge_escape(f".{suffix}") if suffix else ""
        return f"^{_edge_source(self.tokens)}{tail}{EDGE_END}"

    def match(self, path: str, formats: tuple[str, ...] = ()) -> PatternMatch | None:
        """Match a request path (query string ignored).

        A trailing ``.<fmt>`` for a recognized format is stripped before
        matching params; if the stripped path doesn't match, the full
        path is tried so literal suffixes and ``.:format`` still work.
        """
        path = path.partition("?")[0]
        for fmt in formats:
            suffix = f".{fmt}"
            if path.endswith(suffix) and len(path) > len(suffix):
                m = self.regex.fullmatch(path[: -len(suffix)])
                if m is not None:
                    return PatternMatch(self._params(m), fmt)
                m = self.regex.fullmatch(path)
                if m is None:
                    return None
                params = self._params(m)
                return PatternMatch(params, params.get("format") or fmt)

        m = self.regex.fullmatch(path)
        if m is None:
            return None
        params = self._params(m)
        return PatternMatch(params, params.get("format"))

    def _params(self, m: re.Match[str]) -> dict[str, str | None]:
        return dict(zip(self.param_names, m.groups(), strict=True))


@lru_cache(maxsize=512)
def compile_pattern(source: str) -> Pattern:
    """Compile a pattern string. Raises ``PatternError`` if malformed."""
    tokens = parse_pattern(source)
    return Pattern(
        source=source,
        tokens=tokens,
        param_names=tuple(_names(tokens)),
        regex=re.compile(_runtime_source(tokens)),
    )


def join_patterns(prefix: str, sub: str) -> str:
    """Compose a mount prefix with a sub-router pattern."""
    if prefix in ("", "/"):
        return sub
    if sub in ("", "/"):
        return prefix
    return f"{prefix.rstrip('/')}{sub}"
