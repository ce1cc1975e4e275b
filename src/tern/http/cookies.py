"""Cookie parsing and upstream cookie forwarding.

Consolidates the read side (parse_cookies, used by RouteRequest) and the
forwarding side (forwarded_cookie_header, used by upstream fetches on
edge-cached routes) in one module.
"""

from collections.abc import Iterable, Mapping


def parse_cookies(header: str) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Returns an empty dict for empty or missing headers.
    """
    if not header:
        return {}
    cookies: dict[str, str] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if "=" in pair:
            key, _, value = pair.partition("=")
            cookies[key.strip()] = value.strip()
    return cookies


def pick_cookies(cookies: Mapping[str, str], names: Iterable[str]) -> str:
    """Build a ``Cookie`` header holding only *names*, in the order given."""
    return "; ".join(f"{name}={cookies[name]}" for name in names if name in cookies)


def forwarded_cookie_header(
    cookie_header: str,
    policy: bool | tuple[str, ...],
) -> str | None:
    """Apply a cookie forwarding policy to an inbound ``Cookie`` header.

    ``True`` forwards everything, ``False`` nothing, and a tuple of names
    forwards only the cookies a custom cache key varies on. Returns
    ``None`` when no header should be sent.
    """
    if not cookie_header or policy is False:
        return None
    if policy is True:
        return cookie_header
    picked = pick_cookies(parse_cookies(cookie_header), policy)
    return picked or None
