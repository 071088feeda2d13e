# ddhq/sanitizer/resolver.py
#
# URL resolution for image references found in post HTML.
#
# Five raw shapes show up in WordPress content:
#
#   https://host/wp-content/a.jpg     absolute-https
#   http://host/wp-content/a.jpg      absolute-http
#   //host/wp-content/a.jpg           protocol-relative
#   /wp-content/a.jpg                 root-relative
#   wp-content/a.jpg                  bare-relative
#
# All of them collapse to https://<trusted host><path>. The host of the raw
# URL is thrown away on purpose: we only ever serve images from the one
# trusted origin, and the relay re-checks that host anyway.

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote

__all__ = [
    "resolve",
    "relay_url",
    "url_path",
    "is_inert_source",
]

_SCHEME_HOST_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://[^/?#]*")
_PROTO_REL_RE = re.compile(r"^//[^/?#]*")

# values that are placeholders, not resources
_INERT_PREFIXES = ("data:", "blob:", "javascript:", "about:", "#")


def url_path(raw: str) -> str:
    """Path (+query/fragment) of a raw URL, always starting with '/'."""
    s = (raw or "").strip()

    m = _SCHEME_HOST_RE.match(s)
    if m:
        s = s[m.end():]
    else:
        m = _PROTO_REL_RE.match(s)
        if m:
            s = s[m.end():]

    if not s.startswith("/"):
        s = "/" + s
    return s


def resolve(raw: str, trusted_host: str) -> str:
    """
    Canonical absolute URL for `raw` on `trusted_host`.

    Never raises; anything that doesn't look like a URL is treated as a path.
    An empty string resolves to the site root.
    """
    return f"https://{trusted_host}{url_path(raw)}"


def relay_url(
    canonical: str,
    relay_path: str,
    base_url: str = "",
    cache_bust: Optional[str] = None,
) -> str:
    """Wrap a canonical URL as a relay reference: <base><relay_path>?u=<encoded>."""
    path = "/" + relay_path.strip().lstrip("/")
    q = f"u={quote(canonical, safe='')}"
    if cache_bust:
        q += f"&v={quote(str(cache_bust), safe='')}"
    return f"{base_url.strip().rstrip('/')}{path}?{q}"


def is_inert_source(raw: Optional[str]) -> bool:
    if raw is None:
        return True
    s = raw.strip().lower()
    if not s:
        return True
    return s.startswith(_INERT_PREFIXES)
