"""Tests for tern.errors: exception hierarchy."""

from tern.errors import (
    CacheKeyError,
    ConfigurationError,
    HTTPError,
    PatternError,
    TernError,
    UpstreamUnavailable,
)


class TestHierarchy:
    def test_configuration_errors(self) -> None:
        assert issubclass(PatternError, ConfigurationError)
        assert issubclass(CacheKeyError, ConfigurationError)
        assert issubclass(ConfigurationError, TernError)

    def test_http_errors(self) -> None:
        assert issubclass(UpstreamUnavailable, HTTPError)
        assert issubclass(HTTPError, TernError)


class TestPatternError:
    def test_message_with_position(self) -> None:
        error = PatternError("/a(/b", "unbalanced '('", 2)
        assert error.pattern == "/a(/b"
        assert error.position == 2
        assert str(error) == "Invalid pattern '/a(/b' at position 2: unbalanced '('"

    def test_message_without_position(self) -> None:
        assert str(PatternError("/x", "bad")) == "Invalid pattern '/x': bad"


class TestHTTPError:
    def test_str(self) -> None:
        assert str(HTTPError(404, "Not Found")) == "404: Not Found"
        assert str(HTTPError(410)) == "410"

    def test_upstream_unavailable_is_500(self) -> None:
        error = UpstreamUnavailable()
        assert error.status == 500
        assert error.detail == "No upstream capability configured"
