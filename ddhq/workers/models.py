from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class FeaturedImage(BaseModel):
    url: str = ""
    alt: str = ""


class WPPost(BaseModel):
    """The slice of a /wp/v2/posts/{id} response the pipeline reads."""
    id: int
    link: str = ""
    slug: str = ""
    status: str = ""
    date: str = ""
    modified: str = ""
    modified_gmt: str = ""
    title: str = ""
    content_html: str = ""
    excerpt_html: str = ""
    meta: Dict[str, Any] = {}


class SeoFields(BaseModel):
    title: str = ""
    description: str = ""
    focus_keyword: str = ""
    canonical: str = ""
    robots: str = ""
    schema_json: str = Field("", alias="schema")
    breadcrumb_title: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""

    model_config = {"populate_by_name": True}


class PostRecord(BaseModel):
    # upsert key
    site_base_url: str
    post_id: int

    post_slug: Optional[str] = None
    post_link: Optional[str] = None
    status: str = ""

    title: str = ""
    content_html: str = ""     # sanitized (relay-wrapped) body
    excerpt: str = ""
    featured_image_url: str = ""
    featured_image_alt: str = ""

    # source timestamps as WordPress reported them
    source_date: str = ""
    source_modified: str = ""
    source_modified_gmt: str = ""

    seo: SeoFields = Field(default_factory=SeoFields)
    source: str = "ddhq-lite"
    fetched_at: str = ""
