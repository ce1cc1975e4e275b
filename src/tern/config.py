"""Router configuration.

RouterConfig is a frozen dataclass: immutable after creation, with typed fields and
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """Router and edge compiler configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = RouterConfig(platform_backend="app", redirect_status=302)
    """

    # Request formats
    formats: tuple[str, ...] = ("json", "amp")  # Recognized path suffixes, in edge variant order
    data_formats: tuple[str, ...] = ("json", "amp")  # Suffixes that mark a data-only request

    # Edge backends
    platform_backend: str = "moov"
    origin_backend: str = "origin"

    # Edge rule generation
    bootstrap_paths: tuple[str, ...] = ("/.powerlinks.js",)
    notes_prefix: str = "rsf: "
    fallback_notes: str = "__fallback__"
    response_cache_notes: str = "autogenerated from rsf oem.json"

    # Redirects
    redirect_status: int = 301

    # Default location for requests that don't carry one
    hostname: str = "localhost"
    protocol: str = "http"
    port: str = ""
