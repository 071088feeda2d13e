# ddhq/sanitizer/sanitizer.py
#
# ROLE IN PIPELINE:
#
#   workers    → fetch one WordPress post (context=edit, _embed=1)
#
#   sanitizer  → THIS FILE
#                 * activate lazy-load attributes (data-src / data-srcset)
#                 * rewrite every srcset entry through the image relay
#                 * rewrite image-looking src values through the image relay
#                 * leave everything else byte-identical
#
#   api        → renders the sanitized HTML / serves the relay that the
#                rewritten <img> tags point at
#
# HARD RULES:
# - Order matters: lazy activation runs BEFORE url rewriting. Lazy markup
#   usually carries a placeholder in src and the real URL in data-src.
# - srcset entry order is preserved (the browser picks by position + descriptor).
# - Non-image src (scripts, iframes, embeds) is never touched.
# - normalize() is NOT idempotent. Running it on its own output wraps the relay
#   URL a second time. Normalize exactly once per fetch.
#
# The trusted host / relay path are passed in at construction time. They MUST
# be the same values the relay was built with, or the relay will reject URLs
# produced here.

from __future__ import annotations

import html as _html
import re
from typing import Dict, List, Optional, Tuple

from ddhq.sanitizer.resolver import is_inert_source, relay_url, resolve, url_path
from ddhq.sanitizer.tokenizer import Attr, Tag, apply_edits, iter_tags

__all__ = [
    "ContentNormalizer",
    "build_normalizer",
    "looks_like_image",
    "split_srcset",
]

# =============================================================================
# Image classification
# =============================================================================

IMG_EXTS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif")

# Media-library segments: resized variants often have no final extension.
MEDIA_SEGMENTS = ("/wp-content/",)
# segment rule applies to these tags only
MEDIA_TAGS = ("img", "source")

# lazy attribute → live attribute
LAZY_ATTRS: Dict[str, str] = {
    "data-src": "src",
    "data-srcset": "srcset",
}

_QUERY_OR_FRAGMENT = re.compile(r"[?#]")


def looks_like_image(raw: str, tag_name: Optional[str] = None) -> bool:
    path = url_path(raw).lower()
    bare = _QUERY_OR_FRAGMENT.split(path, 1)[0]
    if bare.endswith(IMG_EXTS):
        return True
    if tag_name is not None and tag_name not in MEDIA_TAGS:
        return False
    return any(seg in path for seg in MEDIA_SEGMENTS)


def split_srcset(value: str) -> List[Tuple[str, str]]:
    """'a.jpg 480w, b.jpg 800w' → [('a.jpg', '480w'), ('b.jpg', '800w')]. Empty entries dropped."""
    entries: List[Tuple[str, str]] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split(None, 1)
        url = parts[0]
        descriptor = parts[1].strip() if len(parts) > 1 else ""
        entries.append((url, descriptor))
    return entries


def _escape_attr(value: str, quote: str) -> str:
    out = _html.escape(value, quote=False)
    if quote == "'":
        return out.replace("'", "&#x27;")
    return out.replace("\"", "&quot;")


# =============================================================================
# Normalizer
# =============================================================================

class ContentNormalizer:
    def __init__(
        self,
        trusted_host: str,
        relay_path: str,
        relay_base_url: str = "",
        cache_bust: Optional[str] = None,
    ) -> None:
        self.trusted_host = trusted_host.strip().lower()
        self.relay_path = relay_path
        self.relay_base_url = relay_base_url
        self.cache_bust = cache_bust

    # ── single values ────────────────────────────────────────────────────────

    def proxy(self, raw: str) -> str:
        """Canonicalize `raw` on the trusted host and wrap it as a relay reference."""
        return relay_url(
            resolve(raw, self.trusted_host),
            self.relay_path,
            base_url=self.relay_base_url,
            cache_bust=self.cache_bust,
        )

    def rewrite_srcset(self, value: str) -> str:
        out: List[str] = []
        for url, descriptor in split_srcset(value):
            new_url = url if is_inert_source(url) else self.proxy(url)
            out.append(f"{new_url} {descriptor}" if descriptor else new_url)
        return ", ".join(out)

    def rewrite_src(self, value: str, tag_name: Optional[str] = None) -> Optional[str]:
        """Relay reference for an image src, or None to leave the value alone."""
        if is_inert_source(value) or not looks_like_image(value, tag_name):
            return None
        return self.proxy(value.strip())

    def normalize_featured(self, url: Optional[str], alt: Optional[str] = None) -> Tuple[str, str]:
        """Featured media arrives outside the body HTML; same resolve + wrap, one value."""
        alt = alt or ""
        if is_inert_source(url):
            return "", alt
        return self.proxy(url.strip()), alt

    # ── whole document ───────────────────────────────────────────────────────

    def _activate_lazy(self, tag: Tag) -> Tuple[List[Tuple[Attr, str]], List[Attr]]:
        """
        Returns (surviving attrs with their effective name, attrs to drop).

        When both data-src and src are present, the activated value wins and
        the placeholder is dropped. An empty lazy value activates nothing.
        """
        drop: List[Attr] = []
        for lazy_name, live_name in LAZY_ATTRS.items():
            lazy = tag.get(lazy_name)
            if lazy is None:
                continue
            live = [a for a in tag.attrs if a.name == live_name]
            if live and is_inert_source(lazy.value):
                drop.append(lazy)
            else:
                drop.extend(live)

        surviving: List[Tuple[Attr, str]] = []
        for a in tag.attrs:
            if any(a is d for d in drop):
                continue
            surviving.append((a, LAZY_ATTRS.get(a.name, a.name)))
        return surviving, drop

    def _tag_edits(self, html: str, tag: Tag) -> List[Tuple[int, int, str]]:
        surviving, drop = self._activate_lazy(tag)
        edits: List[Tuple[int, int, str]] = [(a.lead, a.end, "") for a in drop]

        for attr, name in surviving:
            new_value: Optional[str] = None
            if attr.value is not None:
                if name == "srcset":
                    new_value = self.rewrite_srcset(_html.unescape(attr.value))
                elif name == "src":
                    new_value = self.rewrite_src(_html.unescape(attr.value), tag.name)

            renamed = name != attr.name
            if new_value is None and not renamed:
                continue

            if new_value is None:
                edits.append((attr.start, attr.name_end, name))
                continue

            q = attr.quote or "\""
            sep = html[attr.name_end:attr.value_start]
            if not attr.quote:
                sep += q
            edits.append((attr.start, attr.end, f"{name}{sep}{_escape_attr(new_value, q)}{q}"))
        return edits

    def normalize(self, html: str) -> str:
        if not html:
            return ""
        edits: List[Tuple[int, int, str]] = []
        for tag in iter_tags(html):
            edits.extend(self._tag_edits(html, tag))
        return apply_edits(html, edits)


def build_normalizer(settings) -> ContentNormalizer:
    """Normalizer wired with the same trusted host / relay path the relay uses."""
    return ContentNormalizer(
        trusted_host=settings.trusted_origin_host,
        relay_path=settings.relay_path,
        relay_base_url=settings.relay_base_url,
        cache_bust=settings.relay_cache_bust,
    )
