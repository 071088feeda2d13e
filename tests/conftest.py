from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pytest
import requests

from ddhq.api.app.config import Settings

TRUSTED_HOST = "divedeck.net"
RELAY_PATH = "/api/image"


def relayed(path: str, host: str = TRUSTED_HOST) -> str:
    """Expected relay reference for a canonical path on the trusted host."""
    return f"{RELAY_PATH}?u={quote(f'https://{host}{path}', safe='')}"


# --- Fakes ---


class FakeRedis:
    """Just enough of redis.Redis (decode_responses=True) for PostStore."""

    def __init__(self) -> None:
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.sets: Dict[str, set] = {}

    def hset(self, key: str, mapping: Dict[str, str]) -> int:
        h = self.hashes.setdefault(key, {})
        added = len(set(mapping) - set(h))
        h.update({k: str(v) for k, v in mapping.items()})
        return added

    def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self.hashes.get(key, {}))

    def sadd(self, key: str, *members: str) -> int:
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(members)
        return len(s) - before

    def ping(self) -> bool:
        return True


def make_response(status: int, payload: Any = None, text: Optional[str] = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    body = json.dumps(payload) if payload is not None else (text or "")
    r._content = body.encode("utf-8")
    r.encoding = "utf-8"
    r.headers["Content-Type"] = "application/json" if payload is not None else "text/plain"
    return r


class FakeSession:
    """Stands in for requests.Session; returns canned responses per URL."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        self.responses = responses or {}
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params or {}, "headers": headers or {}, "timeout": timeout})
        resp = self.responses.get(url)
        if resp is None:
            return make_response(404, text='{"code":"rest_post_invalid_id"}')
        if isinstance(resp, Exception):
            raise resp
        return resp


# --- Fixtures ---


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        _env_file=None,
        trusted_origin_host=TRUSTED_HOST,
        relay_path=RELAY_PATH,
        relay_base_url="",
        relay_cache_bust=None,
        wp_base_url=f"https://{TRUSTED_HOST}/",
        wp_username="editor",
        wp_app_password="abcd efgh ijkl mnop",
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def wp_post() -> Dict[str, Any]:
    """A trimmed /wp/v2/posts/42?context=edit&_embed=1 payload."""
    return {
        "id": 42,
        "date": "2025-03-01T09:00:00",
        "modified": "2025-03-02T10:30:00",
        "modified_gmt": "2025-03-02T09:30:00",
        "slug": "reef-night-dive",
        "status": "publish",
        "link": "https://divedeck.net/reef-night-dive/",
        "title": {"rendered": "Reef night dive", "raw": "Reef night dive"},
        "content": {
            "rendered": (
                '<p>Intro</p>'
                '<img class="lazy" data-src="https://divedeck.net/wp-content/uploads/2025/03/reef.jpg" '
                'src="data:image/gif;base64,R0lGODlhAQABAAAAACw=" alt="Reef">'
                '<script src="https://divedeck.net/app.js"></script>'
            ),
        },
        "excerpt": {"rendered": "<p>Intro</p>"},
        "meta": {
            "_rank_math_title": "Reef night dive | DiveDeck",
            "rank_math_description": "What we saw on the reef.",
            "rank_math_robots": ["index", "follow"],
        },
        "_embedded": {
            "wp:featuredmedia": [
                {
                    "id": 7,
                    "source_url": "http://cdn.divedeck.net/wp-content/uploads/2025/03/cover.jpg",
                    "alt_text": "Cover",
                }
            ]
        },
    }
