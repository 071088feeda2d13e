# ddhq/workers/jobs.py
#
# PIPELINE ROLE (this file runs in the "workers" container / RQ queue: ingest)
#
#   enqueuer / api → enqueue ingest_post(post_id) on the "ingest" queue
#   workers        → THIS FILE
#                     - fetch the post from WordPress (extractors)
#                     - sanitize body + featured image (sanitizer)
#                     - build the normalized PostRecord
#                     - upsert it into Redis keyed by (site_base_url, post_id)
#   api            → serves rendered posts + the image relay the HTML points at
#
# IMPORTANT:
# - normalize exactly ONCE per fetch (the sanitizer is not idempotent).
# - no retries: a failed fetch fails the job; RQ records it.

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from redis import Redis
from rq import Queue

from ddhq.api.app.config import settings
from ddhq.sanitizer.sanitizer import ContentNormalizer, build_normalizer
from ddhq.workers.extractors import (
    WordPressClient,
    extract_featured,
    extract_post_fields,
    extract_seo,
)
from ddhq.workers.models import PostRecord, SeoFields

__all__ = [
    "build_post_record",
    "PostStore",
    "ingest_post",
    "enqueue_ingest",
    "ingest_job_id",
]

log = logging.getLogger("ddhq.workers")

# =====================================================================
# Redis / env config
# =====================================================================

def _redis() -> Redis:
    """
    Build a Redis client using settings.redis_url.
    """
    return Redis.from_url(settings.redis_url, decode_responses=True)

POST_KEY = "post:{site}:{post_id}"
POST_INDEX_KEY = "posts:index"

# =====================================================================
# Record building
# =====================================================================

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_post_record(
    data: Dict[str, Any],
    site_base_url: str,
    normalizer: ContentNormalizer,
    source: str = "ddhq-lite",
    post_id: Optional[int] = None,
) -> PostRecord:
    """
    Raw post JSON → normalized record. Sanitizes body and featured image once.

    `post_id` is the id that was requested; it keys the record when the
    payload carries no usable id of its own.
    """
    post = extract_post_fields(data)
    featured = extract_featured(data)
    featured_url, featured_alt = normalizer.normalize_featured(featured.url, featured.alt)

    return PostRecord(
        site_base_url=site_base_url.strip().rstrip("/"),
        post_id=post.id or int(post_id or 0),
        post_slug=post.slug or None,
        post_link=post.link or None,
        status=post.status,
        title=post.title,
        content_html=normalizer.normalize(post.content_html),
        excerpt=post.excerpt_html,
        featured_image_url=featured_url,
        featured_image_alt=featured_alt,
        source_date=post.date,
        source_modified=post.modified,
        source_modified_gmt=post.modified_gmt,
        seo=extract_seo(post.meta),
        source=source,
        fetched_at=_utc_now_iso(),
    )

# =====================================================================
# Persistence (upsert keyed by site + post)
# =====================================================================

class PostStore:
    def __init__(self, redis: Optional[Redis] = None) -> None:
        self.redis = redis if redis is not None else _redis()

    @staticmethod
    def key(site_base_url: str, post_id: int) -> str:
        return POST_KEY.format(site=site_base_url.strip().rstrip("/"), post_id=int(post_id))

    def upsert(self, record: PostRecord) -> str:
        key = self.key(record.site_base_url, record.post_id)
        mapping: Dict[str, str] = {}
        for name, value in record.model_dump(exclude={"seo"}).items():
            mapping[name] = "" if value is None else str(value)
        mapping["seo"] = json.dumps(record.seo.model_dump(by_alias=True))

        self.redis.hset(key, mapping=mapping)
        self.redis.sadd(POST_INDEX_KEY, f"{record.site_base_url}|{record.post_id}")
        return key

    def get(self, site_base_url: str, post_id: int) -> Optional[PostRecord]:
        raw = self.redis.hgetall(self.key(site_base_url, post_id))
        if not raw:
            return None
        obj: Dict[str, Any] = dict(raw)
        obj["seo"] = SeoFields(**json.loads(obj.get("seo") or "{}"))
        for opt in ("post_slug", "post_link"):
            if not obj.get(opt):
                obj[opt] = None
        return PostRecord(**obj)

# =====================================================================
# RQ job
# =====================================================================

def ingest_post(post_id: int) -> Dict[str, Any]:
    """
    Fetch → sanitize → upsert one post. Errors propagate so RQ marks the
    job failed; nothing here retries.
    """
    client = WordPressClient.from_settings(settings)
    data = client.fetch_post(post_id)
    record = build_post_record(
        data,
        settings.site_base_url,
        build_normalizer(settings),
        source=settings.record_source,
        post_id=post_id,
    )
    key = PostStore().upsert(record)
    log.info("[ingest_post] UPSERTED %s | %s", key, record.title)
    return {"key": key, "post_id": record.post_id, "title": record.title}


def ingest_job_id(site_base_url: str, post_id: int) -> str:
    # rq job ids: letters, digits, "-" and "_" only
    site = re.sub(r"^https?://", "", site_base_url.strip().rstrip("/"))
    return f"ingest-{re.sub(r'[^A-Za-z0-9_-]+', '-', site)}-{int(post_id)}"


def enqueue_ingest(post_id: int, conn: Optional[Redis] = None, cfg=None):
    cfg = cfg or settings
    # rq pickles payloads: this connection must NOT decode responses
    q = Queue(cfg.ingest_queue, connection=conn if conn is not None else Redis.from_url(cfg.redis_url))
    job = q.enqueue(
        ingest_post,
        int(post_id),
        job_id=ingest_job_id(cfg.site_base_url, post_id),
        ttl=600, result_ttl=3600, failure_ttl=86400,
    )
    log.info("[enqueue_ingest] queued %s", job.id)
    return job
