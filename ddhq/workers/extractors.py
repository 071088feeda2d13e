"""
Extractor layer
---------------
Talks to the WordPress REST API and pulls the fields the pipeline needs out of
a post payload. This file **does not** rewrite HTML; that happens in
ddhq.sanitizer.

Public API:
    basic_auth_header(username, app_password) -> str
    WordPressClient(base_url, auth_header).fetch_post(post_id) -> dict
    extract_post_fields(data) -> WPPost
    extract_featured(data)    -> FeaturedImage
    extract_seo(meta)         -> SeoFields
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Iterable, Optional

import requests

from ddhq.errors import ContentShapeError, TransportError, UpstreamError
from ddhq.workers.models import FeaturedImage, SeoFields, WPPost

__all__ = [
    "basic_auth_header",
    "WordPressClient",
    "extract_post_fields",
    "extract_featured",
    "extract_seo",
]

log = logging.getLogger("ddhq.workers")

# ============================== Config ===============================

POSTS_ENDPOINT = "/wp-json/wp/v2/posts"
USER_AGENT = "Mozilla/5.0 (compatible; DDHQ-Lite/1.0)"
ERROR_BODY_LIMIT = 200

# ============================== Auth =================================

def basic_auth_header(username: Optional[str], app_password: Optional[str]) -> str:
    """
    'Basic base64(user:app-password)' for WordPress Application Passwords.
    Empty string when either half is missing (anonymous request).
    """
    if not username or not app_password:
        return ""
    token = base64.b64encode(f"{username}:{app_password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"

# ============================== Client ===============================

class WordPressClient:
    def __init__(
        self,
        base_url: str,
        auth_header: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.strip().rstrip("/")
        self.auth_header = auth_header
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "WordPressClient":
        return cls(
            settings.site_base_url,
            auth_header=basic_auth_header(settings.wp_username, settings.wp_app_password),
            timeout=settings.wp_timeout,
            session=session,
        )

    def post_url(self, post_id: int) -> str:
        return f"{self.base_url}{POSTS_ENDPOINT}/{int(post_id)}"

    def fetch_post(self, post_id: int) -> Dict[str, Any]:
        """Raw post JSON. UpstreamError / TransportError / ContentShapeError; no retry."""
        params = {"_embed": "1"}
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if self.auth_header:
            # edit context exposes meta (Rank Math keys) but needs credentials
            params["context"] = "edit"
            headers["Authorization"] = self.auth_header

        url = self.post_url(post_id)
        try:
            r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if not r.ok:
            log.warning("[extract] fetch %s -> %s", url, r.status_code)
            raise UpstreamError(r.status_code, (r.text or "")[:ERROR_BODY_LIMIT], url=url)

        try:
            data = r.json()
        except ValueError as e:
            raise ContentShapeError(f"post {post_id}: body is not JSON") from e
        if not isinstance(data, dict):
            raise ContentShapeError(f"post {post_id}: expected a JSON object")
        return data

# ============================== Field extraction =====================

def _str(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, str):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    return ""


def _rendered(v: Any) -> str:
    # WP returns {"rendered": "...", "raw": "..."}; be lenient with plain strings
    if isinstance(v, dict):
        return _str(v.get("rendered"))
    return _str(v)


def extract_post_fields(data: Dict[str, Any]) -> WPPost:
    """Missing / wrongly typed fields degrade to empty values instead of raising."""
    try:
        post_id = int(data.get("id") or 0)
    except (TypeError, ValueError):
        post_id = 0
    meta = data.get("meta")
    return WPPost(
        id=post_id,
        link=_str(data.get("link")),
        slug=_str(data.get("slug")),
        status=_str(data.get("status")),
        date=_str(data.get("date")),
        modified=_str(data.get("modified")),
        modified_gmt=_str(data.get("modified_gmt")),
        title=_rendered(data.get("title")),
        content_html=_rendered(data.get("content")),
        excerpt_html=_rendered(data.get("excerpt")),
        meta=meta if isinstance(meta, dict) else {},
    )


def extract_featured(data: Dict[str, Any]) -> FeaturedImage:
    embedded = data.get("_embedded")
    if not isinstance(embedded, dict):
        return FeaturedImage()
    media = embedded.get("wp:featuredmedia")
    if not isinstance(media, list) or not media or not isinstance(media[0], dict):
        return FeaturedImage()
    item = media[0]
    return FeaturedImage(url=_str(item.get("source_url")), alt=_str(item.get("alt_text")))

# ============================== SEO (Rank Math) ======================

# field → meta keys, first non-null wins
SEO_KEYS: Dict[str, tuple] = {
    "title": ("_rank_math_title", "rank_math_title"),
    "description": ("_rank_math_description", "rank_math_description"),
    "focus_keyword": ("_rank_math_focus_keyword", "rank_math_focus_keyword"),
    "canonical": ("rank_math_canonical_url", "_rank_math_canonical_url", "canonical"),
    "robots": ("rank_math_robots", "_rank_math_robots", "robots"),
    "schema_json": ("rank_math_schema", "_rank_math_schema", "schema"),
    "breadcrumb_title": ("rank_math_breadcrumb_title", "_rank_math_breadcrumb_title"),
    "og_title": ("rank_math_facebook_title", "_rank_math_facebook_title", "og_title"),
    "og_description": ("rank_math_facebook_description", "_rank_math_facebook_description", "og_description"),
    "og_image": ("rank_math_facebook_image", "_rank_math_facebook_image", "og_image"),
    "twitter_title": ("rank_math_twitter_title", "_rank_math_twitter_title", "twitter_title"),
    "twitter_description": ("rank_math_twitter_description", "_rank_math_twitter_description", "twitter_description"),
    "twitter_image": ("rank_math_twitter_image", "_rank_math_twitter_image", "twitter_image"),
}


def _first(meta: Dict[str, Any], keys: Iterable[str]) -> Any:
    for k in keys:
        v = meta.get(k)
        if v is not None:
            return v
    return None


def _schema_text(v: Any) -> str:
    if not v:
        return ""
    if isinstance(v, str):
        return v
    try:
        return json.dumps(v, indent=2)
    except (TypeError, ValueError):
        return str(v)


def extract_seo(meta: Optional[Dict[str, Any]]) -> SeoFields:
    m = meta if isinstance(meta, dict) else {}
    fields: Dict[str, str] = {}
    for name, keys in SEO_KEYS.items():
        v = _first(m, keys)
        if name == "schema_json":
            fields[name] = _schema_text(v)
        elif name == "robots" and isinstance(v, list):
            # Rank Math stores robots as ["index", "follow"]
            fields[name] = ",".join(_str(x) for x in v if _str(x))
        else:
            fields[name] = _str(v)
    return SeoFields(**fields)
