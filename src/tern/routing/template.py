"""Rewrite templates for redirects and origin path transforms.

A template like ``/bar/{cat}/{id}`` names pattern parameters in braces.
The same template is used two ways:

- At runtime, ``render()`` fills placeholders from the matched params.
- At the edge, ``to_edge()`` maps each placeholder to a back-reference
  ``\\N``, where N is the 1-based position of the parameter's first
  appearance in the route pattern.

``\\{`` escapes a brace. The edge expression keeps the escape verbatim,
since the edge platform interprets it; ``render()`` emits a plain ``{``.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tern.errors import PatternError


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class Placeholder:
    name: str


@dataclass(frozen=True, slots=True)
class EscapedBrace:
    pass


Part = Text | Placeholder | EscapedBrace


@dataclass(frozen=True, slots=True)
class RewriteTemplate:
    source: str
    parts: tuple[Part, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parts if isinstance(p, Placeholder))

    def render(self, params: Mapping[str, Any]) -> str:
        """Fill placeholders from *params*; missing values render empty."""
        out: list[str] = []
        for part in self.parts:
            if isinstance(part, Text):
                out.append(part.text)
            elif isinstance(part, Placeholder):
                value = params.get(part.name)
                out.append("" if value is None else str(value))
            else:
                out.append("{")
        return "".join(out)

    def to_edge(self, param_names: Sequence[str]) -> str:
        """Translate to an edge rewrite expression for a pattern's params.

        Raises ``PatternError`` if a placeholder names a parameter the
        pattern doesn't capture.
        """
        out: list[str] = []
        for part in self.parts:
            if isinstance(part, Text):
                out.append(part.text)
            elif isinstance(part, Placeholder):
                if part.name not in param_names:
                    msg = f"placeholder {{{part.name}}} is not a parameter of the route"
                    raise PatternError(self.source, msg)
                out.append(f"\\{param_names.index(part.name) + 1}")
            else:
                out.append("\\{")
        return "".join(out)


def parse_template(source: str) -> RewriteTemplate:
    """Tokenize a rewrite template.

    A ``}`` outside a placeholder is ordinary text.
    Raises ``PatternError`` on an unterminated or empty placeholder.
    """
    parts: list[Part] = []
    text: list[str] = []

    def flush() -> None:
        if text:
            parts.append(Text("".join(text)))
            text.clear()

    i = 0
    while i < len(source):
        ch = source[i]
        if ch == "\\" and source.startswith("{", i + 1):
            flush()
            parts.append(EscapedBrace())
            i += 2
        elif ch == "{":
            end = source.find("}", i + 1)
            if end == -1:
                raise PatternError(source, "unterminated placeholder", i)
            name = source[i + 1 : end]
            if not name:
                raise PatternError(source, "empty placeholder", i)
            flush()
            parts.append(Placeholder(name))
            i = end + 1
        else:
            text.append(ch)
            i += 1
    flush()
    return RewriteTemplate(source=source, parts=tuple(parts))
