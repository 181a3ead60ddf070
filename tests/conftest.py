"""
Pytest configuration and fixtures for IPTV catalog tests.
"""
import json

import httpx
import pytest
import pytest_asyncio

from iptv_catalog.models.catalog import PlaylistCreate
from iptv_catalog.services.catalog_store import CatalogStore


class FakeProvider:
    """
    In-memory IPTV provider behind an httpx.MockTransport.

    Responses are keyed by the ``action`` query parameter, else the ``type``
    parameter, else the URL path. Values are ``(status, body)`` tuples or an
    exception to raise; unknown keys answer 404.
    """

    def __init__(self, responses: dict):
        self.responses = responses
        self.requests: list[str] = []

    def _key(self, request: httpx.Request) -> str:
        params = request.url.params
        return params.get("action") or params.get("type") or request.url.path

    def handler(self, request: httpx.Request) -> httpx.Response:
        key = self._key(request)
        self.requests.append(key)
        response = self.responses.get(key)
        if response is None:
            return httpx.Response(404, text="not found")
        if isinstance(response, Exception):
            raise response
        status, body = response
        if not isinstance(body, str):
            body = json.dumps(body)
        return httpx.Response(status, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def sample_m3u_content():
    """Sample M3U content for testing."""
    return (
        "#EXTM3U\n"
        "#EXTINF:-1 group-title=\"News\",BBC News\n"
        "http://x/1\n"
        "#EXTINF:-1 group-title=\"News\",CNN\n"
        "http://x/2\n"
    )


@pytest.fixture
def panel_payload():
    """panel_api.php style response with nested categories."""
    return {
        "user_info": {"username": "user", "auth": 1},
        "categories": {
            "live": [
                {"category_id": "1", "category_name": "News", "parent_id": 0},
                {"category_id": "2", "category_name": "Sports", "parent_id": 0},
            ],
            "movie": [
                {"category_id": "10", "category_name": "Action", "parent_id": 0},
            ],
        },
        "available_channels": {
            "101": {"name": "BBC One", "category_id": "1", "stream_type": "live", "stream_icon": "http://logo/bbc.png"},
            "102": {"name": "Sky Sports", "category_id": 2, "stream_type": "live"},
            "201": {"name": "Die Hard", "category_id": "10", "stream_type": "movie", "container_extension": "mkv"},
        },
    }


@pytest.fixture
def live_streams_payload():
    """player_api.php get_live_streams style response."""
    return [
        {"num": 1, "name": "BBC One", "stream_id": 101, "category_id": "1", "epg_channel_id": "bbc1.uk"},
        {"num": 2, "name": "CNN", "stream_id": 102, "category_id": "1"},
        {"num": 3, "name": "ESPN", "stream_id": 103, "category_id": "2", "tv_archive": 1},
    ]


@pytest_asyncio.fixture
async def store(tmp_path):
    """Initialized catalog store on a temporary database."""
    catalog_store = CatalogStore(str(tmp_path / "catalog.db"))
    await catalog_store.initialize()
    return catalog_store


@pytest_asyncio.fixture
async def playlist_id(store):
    """A stored playlist pointing at the fake provider."""
    return await store.add_playlist(PlaylistCreate(
        name="Test Provider",
        server_url="http://provider.test",
        username="user",
        password="secret",
    ))
