"""Tests for tern.routing.template: rewrite templates."""

import re

import pytest

from tern.errors import PatternError
from tern.routing.pattern import compile_pattern
from tern.routing.template import EscapedBrace, Placeholder, Text, parse_template


class TestParseTemplate:
    def test_text_and_placeholders(self) -> None:
        template = parse_template("/bar/{cat}/{id}")
        assert template.parts == (Text("/bar/"), Placeholder("cat"), Text("/"), Placeholder("id"))
        assert template.names == ("cat", "id")

    def test_escaped_brace(self) -> None:
        template = parse_template("/bar/\\{x}/{x}")
        assert template.parts == (Text("/bar/"), EscapedBrace(), Text("x}/"), Placeholder("x"))

    def test_stray_closing_brace_is_text(self) -> None:
        assert parse_template("/a}b").parts == (Text("/a}b"),)

    def test_unterminated_placeholder(self) -> None:
        with pytest.raises(PatternError, match="unterminated"):
            parse_template("/bar/{x")

    def test_empty_placeholder(self) -> None:
        with pytest.raises(PatternError, match="empty placeholder"):
            parse_template("/bar/{}")


class TestRender:
    def test_repeated_placeholder(self) -> None:
        template = parse_template("/bar/{x}/x-{y}/{x}")
        assert template.render({"x": "1", "y": "2"}) == "/bar/1/x-2/1"

    def test_missing_value_renders_empty(self) -> None:
        assert parse_template("/bar/{x}").render({}) == "/bar/"

    def test_escaped_brace_renders_literal(self) -> None:
        assert parse_template("/bar/\\{x}/{x}").render({"x": "a"}) == "/bar/{x}/a"


class TestToEdge:
    def test_backreferences_by_first_appearance(self) -> None:
        template = parse_template("/bar/{cat}/{id}")
        assert template.to_edge(("cat", "id")) == "/bar/\\1/\\2"

    def test_repeated_variable(self) -> None:
        template = parse_template("/bar/{x}/{y}/{x}")
        assert template.to_edge(("x", "y")) == "/bar/\\1/\\2/\\1"

    def test_escape_kept_verbatim(self) -> None:
        template = parse_template("/bar/\\{x}/{x}")
        assert template.to_edge(("x",)) == "/bar/\\{x}/\\1"

    def test_variable_at_start(self) -> None:
        assert parse_template("{x}/bar").to_edge(("x",)) == "\\1/bar"

    def test_variable_inside_segment(self) -> None:
        assert parse_template("/bar{x}").to_edge(("x",)) == "/bar\\1"

    def test_unknown_placeholder(self) -> None:
        with pytest.raises(PatternError, match="not a parameter"):
            parse_template("/bar/{nope}").to_edge(("x",))

    def test_edge_rewrite_applies_to_edge_regex(self) -> None:
        """The compiled rewrite turns /foo/a/b into /bar/a/b/a."""
        pattern = compile_pattern("/foo/:x/:y")
        rewrite = parse_template("/bar/{x}/{y}/{x}").to_edge(pattern.param_names)
        assert re.sub(pattern.edge_regex(), rewrite, "/foo/a/b") == "/bar/a/b/a"
