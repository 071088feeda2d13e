# ddhq/api/app/img_proxy.py
#
# Image relay: GET <relay_path>?u=<percent-encoded absolute URL>
#
# Re-fetches an image from the ONE trusted origin with a browser-looking
# header set (the origin/CDN rejects bare clients and cross-origin Referers)
# and hands the bytes back with our own caching headers.
#
# Contract (plain-text bodies, clients key off these):
#   400 Missing u param   → no / empty u
#   400 Bad URL           → not an absolute http(s) URL
#   400 Blocked host      → host != trusted host (exact match, no suffixes),
#                           checked again on every redirect hop
#   <status> Upstream error → origin answered non-2xx (same status, no retry)
#   500 Proxy error       → network / timeout / anything unexpected
#
# Stateless: every call re-validates and re-fetches. Caching is left to HTTP
# caches via Cache-Control.

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import unquote, urljoin, urlparse

import httpx
from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, Response

from ddhq.errors import TransportError, UpstreamError, ValidationError

log = logging.getLogger("ddhq.relay")

__all__ = ["ImageRelay", "build_router"]

# ── Tunables ──────────────────────────────────────────────────────────────────
CACHE_CONTROL = "public, max-age=3600"
DEFAULT_CONTENT_TYPE = "image/jpeg"

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36"
)
IMAGE_ACCEPT = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"


class ImageRelay:
    def __init__(
        self,
        trusted_host: str,
        *,
        connect_timeout: float = 3.0,
        read_timeout: float = 10.0,
        max_redirects: int = 5,
        max_bytes: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.trusted_host = trusted_host.strip().lower()
        self.timeout = httpx.Timeout(
            timeout=None,
            connect=connect_timeout,
            read=read_timeout,
            write=read_timeout,
            pool=connect_timeout,
        )
        self.max_redirects = max_redirects
        self.max_bytes = max_bytes
        self.transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ImageRelay":
        return cls(
            settings.trusted_origin_host,
            connect_timeout=settings.relay_connect_timeout,
            read_timeout=settings.relay_read_timeout,
            max_redirects=settings.relay_max_redirects,
            max_bytes=settings.relay_max_bytes,
            transport=transport,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def browser_headers(self) -> dict[str, str]:
        return {
            "User-Agent": BROWSER_UA,
            "Accept": IMAGE_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": f"https://{self.trusted_host}/",
        }

    def validate(self, raw: Optional[str]) -> str:
        """Decoded target URL, or ValidationError with the client-facing message."""
        if not raw or not raw.strip():
            raise ValidationError("Missing u param")

        target = raw.strip()
        # query parsing already decoded once; a still-encoded value gets one more pass
        if "://" not in target:
            target = unquote(target)

        try:
            p = urlparse(target)
            host = (p.hostname or "").lower()
            p.port  # raises on a non-numeric or out-of-range port
        except ValueError as e:
            raise ValidationError("Bad URL") from e
        if p.scheme not in ("http", "https") or not host:
            raise ValidationError("Bad URL")

        if host != self.trusted_host:
            raise ValidationError("Blocked host")
        return target

    async def _read_capped(self, r: httpx.Response) -> bytes:
        # stop pulling once the cap is passed
        chunks = []
        total = 0
        async for chunk in r.aiter_bytes():
            total += len(chunk)
            if self.max_bytes and total > self.max_bytes:
                raise TransportError(f"body too large (> {self.max_bytes} bytes)")
            chunks.append(chunk)
        return b"".join(chunks)

    async def fetch(self, url: str) -> Tuple[bytes, str]:
        """
        (body, content type) for a validated URL. No retries.

        Redirects are followed here, not by httpx, so every Location goes
        through validate() again; a hop off the trusted host raises
        ValidationError("Blocked host").
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                transport=self.transport,
            ) as client:
                for _ in range(self.max_redirects + 1):
                    async with client.stream("GET", url, headers=self.browser_headers()) as r:
                        if r.is_redirect:
                            url = self.validate(urljoin(url, r.headers["Location"]))
                            log.info("[relay] redirect -> %s", url)
                            continue
                        if not r.is_success:
                            raise UpstreamError(r.status_code, url=url)
                        body = await self._read_capped(r)
                        content_type = r.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
                        return body, content_type
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        raise TransportError(f"too many redirects (> {self.max_redirects})")

    # ── Entry point ───────────────────────────────────────────────────────────

    async def handle(self, raw: Optional[str]) -> Response:
        try:
            url = self.validate(raw)
        except ValidationError as e:
            log.info("[relay] rejected u=%r -> %s", raw, e)
            return PlainTextResponse(str(e), status_code=e.status_code)

        try:
            body, content_type = await self.fetch(url)
        except ValidationError as e:
            log.warning("[relay] redirect rejected for %s: %s", url, e)
            return PlainTextResponse(str(e), status_code=e.status_code)
        except UpstreamError as e:
            log.warning("[relay] upstream %s for %s", e.status_code, url)
            return PlainTextResponse("Upstream error", status_code=e.status_code)
        except Exception as e:
            log.error("[relay] proxy error for %s: %s", url, e)
            return PlainTextResponse("Proxy error", status_code=500)

        return Response(
            content=body,
            status_code=200,
            headers={"Content-Type": content_type, "Cache-Control": CACHE_CONTROL},
        )


def build_router(relay: ImageRelay, relay_path: str) -> APIRouter:
    """Router exposing `relay` at `relay_path` (e.g. /api/image)."""
    router = APIRouter(tags=["img"])
    path = "/" + relay_path.strip().lstrip("/")

    @router.get(path, response_class=Response)
    async def proxy_img(
        u: Optional[str] = Query(None, description="Absolute image URL (URL-encoded)"),
    ):
        return await relay.handle(u)

    return router
