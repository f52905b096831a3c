"""
Shared test configuration and fixtures for the moodboard service tests.

Provides a fake upstream provider (Pinterest, Unsplash and an image host in one aiohttp app
that counts every call it receives), settings pointed at it, and a client for the moodboard
application under test.
"""

from collections import Counter
from typing import Any, Callable, Dict

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from moodboard.app.config import Settings
from moodboard.app.server import start_web_server

APP_URL = "https://moodboard.example"

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"

BOARDS_PAYLOAD = {"items": [{"id": "b1", "name": "Textures"}], "bookmark": None}
PINS_PAYLOAD = {
    "items": [
        {
            "id": "p1",
            "title": "Linen",
            "media": {
                "media_type": "image",
                "images": {
                    "150x150": {"url": "https://i.pinimg.com/150/p1.jpg", "width": 150, "height": 150},
                    "600x": {"url": "https://i.pinimg.com/600/p1.jpg", "width": 600, "height": 900},
                },
            },
        }
    ]
}
SEARCH_PAYLOAD = {"total": 1, "total_pages": 1, "results": [{"id": "u1"}]}


class FakeUpstream:
    """
    One aiohttp app standing in for every upstream provider.

    ``calls`` counts requests per route name and ``seen`` keeps the last request details per
    route. ``behavior`` lets a test change what a route answers.
    """

    def __init__(self) -> None:
        self.calls: Counter = Counter()
        self.seen: Dict[str, Dict[str, Any]] = {}
        self.behavior: Dict[str, Any] = {
            "token_status": 200,
            "token_body": {"access_token": "pina_TOKEN123", "token_type": "bearer"},
            "boards_status": 200,
            "boards_octet_body": None,
            "pins_status": 200,
            "user_account_status": 200,
            "search_status": 200,
            "image_status": 200,
        }
        self.server: TestServer | None = None

    def url(self, path: str) -> str:
        assert self.server is not None
        return str(self.server.make_url(path))

    def app(self) -> web.Application:
        app = web.Application()
        app.add_routes(
            [
                web.post("/v5/oauth/token", self.handle_token),
                web.get("/v5/boards", self.handle_boards),
                web.get("/v5/boards/{board_id}/pins", self.handle_pins),
                web.get("/v5/user_account", self.handle_user_account),
                web.get("/unsplash/search/photos", self.handle_search),
                web.get("/images/{name}", self.handle_image),
            ]
        )
        return app

    def _record(self, name: str, request: web.Request, **extra: Any) -> None:
        self.calls[name] += 1
        self.seen[name] = {
            "authorization": request.headers.get("Authorization"),
            "query": dict(request.query),
            "path": request.path,
            "raw_path": request.raw_path,
            **extra,
        }

    async def handle_token(self, request: web.Request) -> web.Response:
        form = await request.post()
        self._record("token", request, form=dict(form))
        return web.json_response(
            self.behavior["token_body"], status=self.behavior["token_status"]
        )

    async def handle_boards(self, request: web.Request) -> web.Response:
        self._record("boards", request)
        status = self.behavior["boards_status"]
        if status != 200:
            return web.json_response({"code": 2, "message": "Authentication failed."}, status=status)
        octet_body = self.behavior["boards_octet_body"]
        if octet_body is not None:
            return web.Response(body=octet_body, content_type="application/octet-stream")
        return web.json_response(BOARDS_PAYLOAD)

    async def handle_pins(self, request: web.Request) -> web.Response:
        self._record("pins", request, board_id=request.match_info["board_id"])
        status = self.behavior["pins_status"]
        if status != 200:
            return web.json_response({"code": 4, "message": "Board not found."}, status=status)
        return web.json_response(PINS_PAYLOAD)

    async def handle_user_account(self, request: web.Request) -> web.Response:
        self._record("user_account", request)
        status = self.behavior["user_account_status"]
        return web.json_response({"username": "moodboarder"}, status=status)

    async def handle_search(self, request: web.Request) -> web.Response:
        self._record("search", request)
        status = self.behavior["search_status"]
        if status != 200:
            return web.json_response({"errors": ["OAuth error: The access token is invalid"]}, status=status)
        return web.json_response(SEARCH_PAYLOAD)

    async def handle_image(self, request: web.Request) -> web.Response:
        self._record("image", request)
        status = self.behavior["image_status"]
        if status != 200:
            return web.Response(status=status, text="gone")
        return web.Response(body=PNG_BYTES, content_type="image/png")


@pytest_asyncio.fixture
async def upstream():
    """Run the fake upstream provider on a local port."""
    fake = FakeUpstream()
    server = TestServer(fake.app())
    await server.start_server()
    fake.server = server
    yield fake
    await server.close()


@pytest.fixture
def make_settings(upstream) -> Callable[..., Settings]:
    """Build Settings pointed at the fake upstream, with every credential configured."""

    def _make_settings(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "debug": False,
            "app_url": APP_URL,
            "allowed_domains": "",
            "static_dir": None,
            "pinterest_client_id": "client-id",
            "pinterest_client_secret": "client-secret",
            "pinterest_api_url": upstream.url("/v5"),
            "pinterest_validate_status": False,
            "unsplash_access_key": "unsplash-key",
            "unsplash_api_url": upstream.url("/unsplash"),
            "gemini_api_key": None,
            "sentry_dsn": None,
            "metrics_backend": "none",
        }
        values.update(overrides)
        return Settings(**values)

    return _make_settings


@pytest_asyncio.fixture
async def make_client(make_settings):
    """
    Start the moodboard application with the given setting overrides.

    Returns an async factory; every client it started is closed at teardown.
    """
    clients = []

    async def _make_client(**overrides: Any) -> TestClient:
        app = await start_web_server(make_settings(**overrides))
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield _make_client

    for started in clients:
        await started.close()


@pytest_asyncio.fixture
async def client(make_client):
    """Moodboard application with default test settings."""
    return await make_client()
