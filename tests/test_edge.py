"""Tests for tern.edge: edge configuration compiler."""

import json

import pytest

from tern.cache_key import create_custom_cache_key
from tern.config import RouterConfig
from tern.edge import compile_edge_configuration, to_json
from tern.errors import PatternError
from tern.handlers import cache, from_client, from_origin, from_server, proxy_upstream, redirect_to
from tern.routing.router import Router

BOOTSTRAP = [
    {
        "notes": "rsf: /.powerlinks.js.json",
        "path_regex": "^/\\.powerlinks\\.js\\.json(?=\\?|$)",
        "proxy": {"backend": "moov"},
    },
    {
        "notes": "rsf: /.powerlinks.js.amp",
        "path_regex": "^/\\.powerlinks\\.js\\.amp(?=\\?|$)",
        "proxy": {"backend": "moov"},
    },
    {
        "notes": "rsf: /.powerlinks.js",
        "path_regex": "^/\\.powerlinks\\.js(?=\\?|$)",
        "proxy": {"backend": "moov"},
    },
]

FALLBACK = {"notes": "rsf: __fallback__", "path_regex": ".", "proxy": {"backend": "moov"}}


def _by_region(cookie) -> None:
    cookie.partition("na").by_pattern("us|ca")
    cookie.partition("eur").by_pattern("de|fr|ee")


@pytest.fixture
def cache_handler():
    key = (
        create_custom_cache_key()
        .add_header("user-agent")
        .add_header("host")
        .exclude_query_parameters(["uid", "gclid"])
        .add_cookie("currency")
        .add_cookie("location", _by_region)
    )
    return cache(edge={"max_age_seconds": 300, "key": key})


class TestShape:
    def test_top_level_keys_in_order(self) -> None:
        config = Router().create_edge_configuration()
        assert list(config) == ["router", "backends", "custom_cache_keys"]

    def test_empty_router(self) -> None:
        config = Router().create_edge_configuration()
        assert config["router"] == [*BOOTSTRAP, FALLBACK]
        assert config["backends"] == {}

    def test_rule_key_order(self) -> None:
        config = Router().get("/foo", redirect_to("/bar")).create_edge_configuration()
        assert list(config["router"][5]) == ["notes", "path_regex", "redirect"]
        assert list(config["router"][5]["redirect"]) == ["status", "rewrite_path_regex"]

    def test_compiling_freezes_router(self) -> None:
        router = Router().get("/", from_client({}))
        router.create_edge_configuration()
        with pytest.raises(RuntimeError):
            router.get("/late", from_client({}))

    def test_deterministic(self, cache_handler) -> None:
        router = Router().get("/", cache_handler).get("/p/:id", from_origin("desktop"))
        assert compile_edge_configuration(router) == compile_edge_configuration(router)

    def test_handlers_never_run(self) -> None:
        calls: list[str] = []
        router = Router().get("/", from_server(lambda: calls.append("ran")))
        router.create_edge_configuration()
        assert calls == []


class TestCustomCacheKeys:
    def test_cache_keys_for_every_rule(self, cache_handler) -> None:
        router = Router().get("/", cache_handler).get("/p/:id", cache_handler)
        config = router.create_edge_configuration()

        key_fields = {
            "add_cookies": {
                "currency": None,
                "location": [
                    {"partition": "na", "partitioning_regex": "us|ca"},
                    {"partition": "eur", "partitioning_regex": "de|fr|ee"},
                ],
            },
            "add_headers": ["user-agent", "host"],
            "query_parameters_list": ["uid", "gclid"],
            "query_parameters_mode": "blacklist",
        }
        assert config["custom_cache_keys"] == [
            {"notes": "rsf: /.powerlinks.js.json", "path_regex": "^/\\.powerlinks\\.js\\.json(?=\\?|$)"},
            {"notes": "rsf: /.powerlinks.js.amp", "path_regex": "^/\\.powerlinks\\.js\\.amp(?=\\?|$)"},
            {"notes": "rsf: /.powerlinks.js", "path_regex": "^/\\.powerlinks\\.js(?=\\?|$)"},
            {"notes": "rsf: /.json", "path_regex": "^/\\.json(?=\\?|$)", **key_fields},
            {"notes": "rsf: /.amp", "path_regex": "^/\\.amp(?=\\?|$)", **key_fields},
            {"notes": "rsf: /", "path_regex": "^/(?=\\?|$)", **key_fields},
            {"notes": "rsf: /p/:id.json", "path_regex": "^/p/([^/\\?]+)\\.json(?=\\?|$)", **key_fields},
            {"notes": "rsf: /p/:id.amp", "path_regex": "^/p/([^/\\?]+)\\.amp(?=\\?|$)", **key_fields},
            {"notes": "rsf: /p/:id", "path_regex": "^/p/([^/\\?]+)(?=\\?|$)", **key_fields},
            {"notes": "rsf: __fallback__", "path_regex": "."},
        ]

    def test_key_fields_not_on_router_rules(self, cache_handler) -> None:
        config = Router().get("/", cache_handler).create_edge_configuration()
        assert config["router"][5] == {"notes": "rsf: /", "path_regex": "^/(?=\\?|$)", "proxy": {"backend": "moov"}}


class TestProxy:
    def test_proxy_to_given_origin(self) -> None:
        router = Router().get("/foo", from_origin("desktop"))
        assert router.create_edge_configuration()["router"] == [
            *BOOTSTRAP,
            {"notes": "rsf: /foo.json", "path_regex": "^/foo\\.json(?=\\?|$)", "proxy": {"backend": "desktop"}},
            {"notes": "rsf: /foo.amp", "path_regex": "^/foo\\.amp(?=\\?|$)", "proxy": {"backend": "desktop"}},
            {"notes": "rsf: /foo", "path_regex": "^/foo(?=\\?|$)", "proxy": {"backend": "desktop"}},
            FALLBACK,
        ]

    def test_fallback_from_origin(self) -> None:
        router = Router().get("/foo", from_server("myapp.handlers:foo")).fallback(from_origin())
        rules = router.create_edge_configuration()["router"]
        assert [rule["proxy"] for rule in rules] == [{"backend": "moov"}] * 6 + [{"backend": "origin"}]
        assert rules[-1]["path_regex"] == "."

    def test_proxy_upstream_is_a_regular_rule(self) -> None:
        rules = Router().get("/about", proxy_upstream()).create_edge_configuration()["router"]
        assert rules[5] == {"notes": "rsf: /about", "path_regex": "^/about(?=\\?|$)", "proxy": {"backend": "moov"}}

    def test_transformed_path(self) -> None:
        router = Router().get("/foo/:cat/:id", from_origin("desktop").transform_path("/bar/{cat}/{id}"))
        rules = router.create_edge_configuration()["router"]
        proxy = {"backend": "desktop", "rewrite_path_regex": "/bar/\\1/\\2"}
        assert rules[3:6] == [
            {
                "notes": "rsf: /foo/:cat/:id.json",
                "path_regex": "^/foo/([^/\\?]+)/([^/\\?]+)\\.json(?=\\?|$)",
                "proxy": proxy,
            },
            {
                "notes": "rsf: /foo/:cat/:id.amp",
                "path_regex": "^/foo/([^/\\?]+)/([^/\\?]+)\\.amp(?=\\?|$)",
                "proxy": proxy,
            },
            {
                "notes": "rsf: /foo/:cat/:id",
                "path_regex": "^/foo/([^/\\?]+)/([^/\\?]+)(?=\\?|$)",
                "proxy": proxy,
            },
        ]

    def test_repeated_variable(self) -> None:
        router = Router().get("/foo/:x/:y", from_origin("desktop").transform_path("/bar/{x}/{y}/{x}"))
        assert router.create_edge_configuration()["router"][5] == {
            "notes": "rsf: /foo/:x/:y",
            "path_regex": "^/foo/([^/\\?]+)/([^/\\?]+)(?=\\?|$)",
            "proxy": {"backend": "desktop", "rewrite_path_regex": "/bar/\\1/\\2/\\1"},
        }

    def test_escaped_paths_left_alone(self) -> None:
        router = Router().get("/foo/:x", from_origin("desktop").transform_path("/bar/\\{x}/{x}"))
        assert router.create_edge_configuration()["router"][5]["proxy"] == {
            "backend": "desktop",
            "rewrite_path_regex": "/bar/\\{x}/\\1",
        }

    def test_variable_at_beginning(self) -> None:
        router = Router().get("/foo/:x", from_origin("desktop").transform_path("{x}/bar"))
        assert router.create_edge_configuration()["router"][5]["proxy"]["rewrite_path_regex"] == "\\1/bar"

    def test_variable_within_segment(self) -> None:
        router = Router().get("/foo/:x", from_origin("desktop").transform_path("/bar{x}"))
        assert router.create_edge_configuration()["router"][5]["proxy"]["rewrite_path_regex"] == "/bar\\1"

    def test_unknown_placeholder(self) -> None:
        router = Router().get("/foo/:x", from_origin().transform_path("/bar/{nope}"))
        with pytest.raises(PatternError, match="not a parameter"):
            router.create_edge_configuration()


class TestRedirect:
    def test_redirect_with_status(self) -> None:
        router = Router().get("/foo", redirect_to("/bar").with_status(302))
        assert router.create_edge_configuration()["router"][5] == {
            "notes": "rsf: /foo",
            "path_regex": "^/foo(?=\\?|$)",
            "redirect": {"status": 302, "rewrite_path_regex": "/bar"},
        }

    def test_redirect_with_splat(self) -> None:
        router = Router().get("/foo/*path", redirect_to("/bar/{path}").with_status(200))
        assert router.create_edge_configuration()["router"][5] == {
            "notes": "rsf: /foo/*path",
            "path_regex": "^/foo/([^?]*?)(?=\\?|$)",
            "redirect": {"status": 200, "rewrite_path_regex": "/bar/\\1"},
        }

    def test_default_status(self) -> None:
        rules = Router().get("/foo", redirect_to("/bar")).create_edge_configuration()["router"]
        assert rules[5]["redirect"]["status"] == 301


class TestResponseCache:
    def test_ttl_rules_for_origin_backend(self) -> None:
        router = Router().get("/foo", cache(edge={"max_age_seconds": 500}), from_origin("desktop"))
        config = router.create_edge_configuration()

        assert config["router"][5] == {
            "notes": "rsf: /foo",
            "path_regex": "^/foo(?=\\?|$)",
            "proxy": {"backend": "desktop"},
        }
        assert config["backends"] == {
            "desktop": {
                "response_router": [
                    {
                        "notes": "autogenerated from rsf oem.json",
                        "path_regex": "^/foo\\.json(?=\\?|$)",
                        "ttl": "500s",
                    },
                    {
                        "notes": "autogenerated from rsf oem.json",
                        "path_regex": "^/foo\\.amp(?=\\?|$)",
                        "ttl": "500s",
                    },
                    {
                        "notes": "autogenerated from rsf oem.json",
                        "path_regex": "^/foo(?=\\?|$)",
                        "ttl": "500s",
                    },
                ],
            },
        }

    def test_no_ttl_without_origin(self) -> None:
        router = Router().get("/foo", cache(edge={"max_age_seconds": 500}), from_server(lambda: {}))
        assert router.create_edge_configuration()["backends"] == {}

    def test_no_ttl_without_edge_cache(self) -> None:
        router = Router().get("/foo", cache(client=True), from_origin("desktop"))
        assert router.create_edge_configuration()["backends"] == {}

    def test_fallback_ttl(self) -> None:
        router = Router().fallback(cache(edge={"max_age_seconds": 60}), from_origin())
        assert router.create_edge_configuration()["backends"] == {
            "origin": {
                "response_router": [
                    {"notes": "autogenerated from rsf oem.json", "path_regex": ".", "ttl": "60s"},
                ],
            },
        }


class TestVariants:
    def test_suffixed_pattern_emits_only_itself(self) -> None:
        rules = Router().get("/robots.txt", from_origin()).create_edge_configuration()["router"]
        assert rules[3:-1] == [
            {"notes": "rsf: /robots.txt", "path_regex": "^/robots\\.txt(?=\\?|$)", "proxy": {"backend": "origin"}},
        ]

    def test_suffixed_variants_precede_base_per_route(self) -> None:
        router = Router().get("/a", from_client({})).get("/b", from_client({}))
        notes = [rule["notes"] for rule in router.create_edge_configuration()["router"][3:-1]]
        assert notes == ["rsf: /a.json", "rsf: /a.amp", "rsf: /a", "rsf: /b.json", "rsf: /b.amp", "rsf: /b"]

    def test_mounted_routes_use_composed_patterns(self) -> None:
        sub = Router().get("/orders/:id", from_client({}))
        rules = Router().use("/account", sub).create_edge_configuration()["router"]
        assert rules[5]["notes"] == "rsf: /account/orders/:id"

    def test_custom_config(self) -> None:
        config = RouterConfig(platform_backend="app", formats=("json",), bootstrap_paths=())
        router = Router(config).get("/foo", from_client({}))
        assert router.create_edge_configuration()["router"] == [
            {"notes": "rsf: /foo.json", "path_regex": "^/foo\\.json(?=\\?|$)", "proxy": {"backend": "app"}},
            {"notes": "rsf: /foo", "path_regex": "^/foo(?=\\?|$)", "proxy": {"backend": "app"}},
            {"notes": "rsf: __fallback__", "path_regex": ".", "proxy": {"backend": "app"}},
        ]


class TestToJson:
    def test_round_trips_in_order(self) -> None:
        config = Router().get("/foo", from_origin("desktop")).create_edge_configuration()
        text = to_json(config)
        assert json.loads(text) == config
        assert text.index('"router"') < text.index('"backends"') < text.index('"custom_cache_keys"')
