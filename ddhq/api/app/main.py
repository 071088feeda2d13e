# ddhq/api/app/main.py
#
# DDHQ LITE PUBLIC API
#
# LIFECYCLE OVERVIEW (DO NOT BREAK THIS CONTRACT):
#
#   workers    → fetch one WordPress post, sanitize it, upsert the record
#
#   sanitizer  → rewrites <img src/srcset> to <relay_path>?u=<canonical url>
#
#   api (THIS FILE)
#       GET  /v1/posts/{id}          fetch + sanitize + render to caller
#       POST /v1/posts/{id}/sync     fetch + sanitize + upsert (or ?queue=1 → rq)
#       GET  <relay_path>?u=...      image relay (img_proxy.py)
#
# The trusted origin host is read from Settings ONCE in create_app() and
# handed to both the normalizer and the relay. They must agree, or the relay
# rejects every URL the normalizer produced.

from __future__ import annotations

import json
import logging
from typing import Optional

import httpx
import redis
import requests
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ddhq.api.app.config import Settings, settings as default_settings
from ddhq.api.app.img_proxy import ImageRelay, build_router
from ddhq.errors import ContentShapeError, TransportError, UpstreamError
from ddhq.sanitizer.sanitizer import build_normalizer
from ddhq.workers.extractors import WordPressClient
from ddhq.workers.jobs import PostStore, build_post_record, enqueue_ingest
from ddhq.workers.models import FeaturedImage, PostRecord, SeoFields

VERSION = "0.1.0"

# -----------------------------------------------------------------------------
# logging
# -----------------------------------------------------------------------------

log = logging.getLogger("ddhq.api")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)

# -----------------------------------------------------------------------------
# Pydantic response models
# -----------------------------------------------------------------------------

class PostOut(BaseModel):
    id: int
    title: str = ""
    link: Optional[str] = None
    slug: Optional[str] = None
    status: str = ""
    modified: str = ""
    content_html: str = ""
    excerpt: str = ""
    featured_image: FeaturedImage = FeaturedImage()
    seo: SeoFields = SeoFields()


class SyncResponse(BaseModel):
    ok: bool = True
    queued: bool = False
    key: Optional[str] = None
    job_id: Optional[str] = None
    record: Optional[PostRecord] = None


class ErrorBody(BaseModel):
    ok: bool = False
    status: int
    error: str
    message: str


def _json_error(status_code: int, err: str, msg: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorBody(status=status_code, error=err, message=msg).model_dump(),
    )


def _post_out(record: PostRecord) -> PostOut:
    return PostOut(
        id=record.post_id,
        title=record.title,
        link=record.post_link,
        slug=record.post_slug,
        status=record.status,
        modified=record.source_modified,
        content_html=record.content_html,
        excerpt=record.excerpt,
        featured_image=FeaturedImage(url=record.featured_image_url, alt=record.featured_image_alt),
        seo=record.seo,
    )

# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------

def create_app(
    cfg: Optional[Settings] = None,
    *,
    relay_transport: Optional[httpx.AsyncBaseTransport] = None,
    wp_session: Optional[requests.Session] = None,
    store: Optional[PostStore] = None,
) -> FastAPI:
    cfg = cfg or default_settings

    app = FastAPI(
        title="DDHQ Lite API",
        version=VERSION,
        description=(
            "Fetches a WordPress post, rewrites its images through the image relay "
            f"({cfg.relay_path}?u=...) and serves the relay itself.\n"
            f"Only images from {cfg.trusted_origin_host} are ever relayed."
        ),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # one trusted host, threaded into both halves
    normalizer = build_normalizer(cfg)
    relay = ImageRelay.from_settings(cfg, transport=relay_transport)
    app.include_router(build_router(relay, cfg.relay_path))

    def _store() -> PostStore:
        nonlocal store
        if store is None:
            store = PostStore(redis.from_url(cfg.redis_url, decode_responses=True))
        return store

    def _fetch_record(post_id: int) -> PostRecord:
        client = WordPressClient.from_settings(cfg, session=wp_session)
        data = client.fetch_post(post_id)
        return build_post_record(data, cfg.site_base_url, normalizer, source=cfg.record_source, post_id=post_id)

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(UpstreamError)
    async def upstream_exc_handler(_: Request, exc: UpstreamError):
        log.warning("[api] upstream error: %s", exc)
        return _json_error(502, "upstream_error", f"WordPress returned {exc.status_code}: {exc.body}")

    @app.exception_handler(TransportError)
    async def transport_exc_handler(_: Request, exc: TransportError):
        log.warning("[api] transport error: %s", exc)
        return _json_error(504, "transport_error", "WordPress unreachable")

    @app.exception_handler(ContentShapeError)
    async def shape_exc_handler(_: Request, exc: ContentShapeError):
        log.warning("[api] content shape error: %s", exc)
        return _json_error(502, "content_shape_error", str(exc))

    @app.exception_handler(HTTPException)
    async def http_exc_handler(_: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else json.dumps(exc.detail)
        return _json_error(exc.status_code, "http_error", detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(_: Request, exc: RequestValidationError):
        return _json_error(422, "validation_error", exc.errors().__repr__())

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(_: Request, exc: Exception):
        log.exception("[api] unhandled error")
        return _json_error(500, exc.__class__.__name__, "Internal server error")

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health():
        """Basic health + some debug info."""
        try:
            ok = bool(_store().redis.ping())
            err = None
        except Exception as e:
            ok = False
            err = f"{type(e).__name__}"

        return {
            "status": "ok" if ok else "degraded",
            "redis_ok": ok,
            "error": err,
            "env": cfg.env,
            "trusted_host": cfg.trusted_origin_host,
            "relay_path": cfg.relay_path,
            "version": VERSION,
        }

    @app.get(
        "/v1/posts/{post_id}",
        response_model=PostOut,
        summary="Fetch + sanitize one WordPress post",
    )
    def get_post(post_id: int):
        record = _fetch_record(post_id)
        log.info("[api] rendered post %s | %s", record.post_id, record.title)
        return _post_out(record)

    @app.post(
        "/v1/posts/{post_id}/sync",
        response_model=SyncResponse,
        summary="Fetch + sanitize + upsert one post (or queue it)",
    )
    def sync_post(
        post_id: int,
        queue: int = Query(0, description="Set 1 to enqueue an ingest job instead"),
    ):
        if queue:
            job = enqueue_ingest(post_id, cfg=cfg)
            return SyncResponse(queued=True, job_id=job.id)

        record = _fetch_record(post_id)
        key = _store().upsert(record)
        log.info("[api] upserted %s", key)
        return SyncResponse(key=key, record=record)

    @app.get("/")
    def root():
        """Basic ping."""
        return {"ok": True, "service": "ddhq-lite-api", "env": cfg.env, "version": VERSION}

    return app


app = create_app()
