"""Tests for the WordPress fetcher and field/SEO extraction."""

from __future__ import annotations

import base64
import json

import pytest
import requests

from conftest import FakeSession, make_response
from ddhq.errors import ContentShapeError, TransportError, UpstreamError
from ddhq.workers.extractors import (
    WordPressClient,
    basic_auth_header,
    extract_featured,
    extract_post_fields,
    extract_seo,
)

POST_URL = "https://divedeck.net/wp-json/wp/v2/posts/42"


# --- Auth ---


class TestBasicAuthHeader:
    def test_encodes_user_and_app_password(self) -> None:
        header = basic_auth_header("editor", "abcd efgh ijkl mnop")
        assert header == "Basic " + base64.b64encode(b"editor:abcd efgh ijkl mnop").decode()

    def test_utf8_credentials(self) -> None:
        header = basic_auth_header("rédaction", "pässword")
        assert base64.b64decode(header.split(" ", 1)[1]).decode("utf-8") == "rédaction:pässword"

    @pytest.mark.parametrize("user, pw", [("", "x"), ("x", ""), (None, None)])
    def test_missing_half_is_anonymous(self, user, pw) -> None:
        assert basic_auth_header(user, pw) == ""


# --- Client ---


class TestWordPressClient:
    def test_authenticated_fetch_uses_edit_context(self, wp_post) -> None:
        session = FakeSession({POST_URL: make_response(200, wp_post)})
        client = WordPressClient("https://divedeck.net///", auth_header="Basic abc", session=session)
        data = client.fetch_post(42)

        assert data["id"] == 42
        call = session.calls[0]
        assert call["url"] == POST_URL
        assert call["params"] == {"_embed": "1", "context": "edit"}
        assert call["headers"]["Authorization"] == "Basic abc"
        assert call["headers"]["Accept"] == "application/json"

    def test_anonymous_fetch_uses_view_context(self, wp_post) -> None:
        session = FakeSession({POST_URL: make_response(200, wp_post)})
        WordPressClient("https://divedeck.net", session=session).fetch_post(42)
        call = session.calls[0]
        assert call["params"] == {"_embed": "1"}
        assert "Authorization" not in call["headers"]

    def test_from_settings(self, cfg, wp_post) -> None:
        session = FakeSession({POST_URL: make_response(200, wp_post)})
        client = WordPressClient.from_settings(cfg, session=session)
        assert client.base_url == "https://divedeck.net"
        assert client.auth_header == basic_auth_header("editor", "abcd efgh ijkl mnop")

    def test_non_2xx_is_upstream_error(self) -> None:
        session = FakeSession({POST_URL: make_response(401, text="x" * 500)})
        with pytest.raises(UpstreamError) as exc_info:
            WordPressClient("https://divedeck.net", session=session).fetch_post(42)
        assert exc_info.value.status_code == 401
        assert len(exc_info.value.body) == 200
        assert len(session.calls) == 1  # no retry

    def test_network_error_is_transport_error(self) -> None:
        session = FakeSession({POST_URL: requests.ConnectionError("dns")})
        with pytest.raises(TransportError):
            WordPressClient("https://divedeck.net", session=session).fetch_post(42)

    def test_timeout_is_transport_error(self) -> None:
        session = FakeSession({POST_URL: requests.Timeout("slow")})
        with pytest.raises(TransportError):
            WordPressClient("https://divedeck.net", session=session).fetch_post(42)

    def test_non_json_body(self) -> None:
        session = FakeSession({POST_URL: make_response(200, text="<html>login</html>")})
        with pytest.raises(ContentShapeError):
            WordPressClient("https://divedeck.net", session=session).fetch_post(42)

    def test_json_array_body(self) -> None:
        session = FakeSession({POST_URL: make_response(200, [1, 2])})
        with pytest.raises(ContentShapeError):
            WordPressClient("https://divedeck.net", session=session).fetch_post(42)


# --- Field extraction ---


class TestExtractPostFields:
    def test_full_payload(self, wp_post) -> None:
        post = extract_post_fields(wp_post)
        assert post.id == 42
        assert post.title == "Reef night dive"
        assert post.slug == "reef-night-dive"
        assert post.status == "publish"
        assert post.modified_gmt == "2025-03-02T09:30:00"
        assert "data-src" in post.content_html
        assert post.excerpt_html == "<p>Intro</p>"
        assert post.meta["_rank_math_title"] == "Reef night dive | DiveDeck"

    def test_missing_fields_degrade_to_empty(self) -> None:
        post = extract_post_fields({"id": "7", "title": None, "content": {"raw": "x"}, "meta": []})
        assert post.id == 7
        assert post.title == ""
        assert post.content_html == ""
        assert post.link == ""
        assert post.meta == {}

    def test_bad_id(self) -> None:
        assert extract_post_fields({"id": "abc"}).id == 0


class TestExtractFeatured:
    def test_embedded_media(self, wp_post) -> None:
        featured = extract_featured(wp_post)
        assert featured.url == "http://cdn.divedeck.net/wp-content/uploads/2025/03/cover.jpg"
        assert featured.alt == "Cover"

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"_embedded": None},
            {"_embedded": {"wp:featuredmedia": []}},
            {"_embedded": {"wp:featuredmedia": [{"code": "rest_forbidden"}]}},
        ],
    )
    def test_missing_media(self, data) -> None:
        featured = extract_featured(data)
        assert featured.url == ""
        assert featured.alt == ""


# --- SEO ---


class TestExtractSeo:
    def test_underscore_keys_win_for_title(self) -> None:
        seo = extract_seo({"_rank_math_title": "A", "rank_math_title": "B"})
        assert seo.title == "A"

    def test_plain_key_wins_for_canonical(self) -> None:
        seo = extract_seo({"canonical": "c", "_rank_math_canonical_url": "b", "rank_math_canonical_url": "a"})
        assert seo.canonical == "a"

    def test_generic_fallbacks(self) -> None:
        seo = extract_seo({"og_title": "OG", "twitter_image": "https://divedeck.net/t.jpg"})
        assert seo.og_title == "OG"
        assert seo.twitter_image == "https://divedeck.net/t.jpg"

    def test_schema_object_dumped(self) -> None:
        schema = {"@type": "Article", "headline": "x"}
        seo = extract_seo({"rank_math_schema": schema})
        assert json.loads(seo.schema_json) == schema

    def test_robots_list_joined(self) -> None:
        assert extract_seo({"rank_math_robots": ["index", "follow"]}).robots == "index,follow"

    def test_missing_meta(self) -> None:
        seo = extract_seo(None)
        assert seo.title == ""
        assert seo.schema_json == ""
        assert seo.model_dump(by_alias=True)["schema"] == ""


def test_module_docstring_is_exposed() -> None:
    from ddhq.workers import extractors

    assert extractors.__doc__ is not None
    assert "Extractor layer" in extractors.__doc__
