"""Tests for request dispatch, CORS wrapping and static resources."""

from __future__ import annotations

import contextlib
from pathlib import Path

import pytest
from aiohttp import test_utils, web

from livebridge.core.config import RelayConfig
from livebridge.core.exceptions import ApiProxyError, StaticResourceNotFound
from livebridge.server.api_proxy import match_api_suffix
from livebridge.server.app import RelayServer
from livebridge.server.static import StaticStore, content_type_for

ORIGIN = "https://app.example.com"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeApiProxy:
    """Records forwarded requests and answers with a canned response."""

    def __init__(self, response: web.Response | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[tuple[str, str, bytes]] = []
        self.closed = False

    async def forward(self, request: web.Request) -> web.StreamResponse:
        self.requests.append((request.method, request.path_qs, await request.read()))
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def static_root(tmp_path: Path) -> Path:
    root = tmp_path / "static"
    root.mkdir()
    (root / "index.html").write_text("<h1>live</h1>", encoding="utf-8")
    (root / "logo.png").write_bytes(PNG_BYTES)
    (root / "notes.xyz").write_text("opaque", encoding="utf-8")
    (root / "js").mkdir()
    (root / "js" / "app.js").write_text("console.log('hi')", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("do not serve", encoding="utf-8")
    return root


@contextlib.asynccontextmanager
async def relay_client(static_root: Path, api_proxy: FakeApiProxy | None = None):
    config = RelayConfig(allowed_origin=ORIGIN, static_root=str(static_root))
    server = RelayServer(
        config,
        api_proxy=api_proxy or FakeApiProxy(web.Response(text="unused")),
        static_store=StaticStore(static_root),
    )
    client = test_utils.TestClient(test_utils.TestServer(server.create_app()))
    await client.start_server()
    try:
        yield client
    finally:
        await client.close()


def assert_cors(headers) -> None:
    assert headers["Access-Control-Allow-Origin"] == ORIGIN
    assert headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"
    assert headers["Access-Control-Allow-Headers"] == "*"


class TestPreflight:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/", "/v1/models", "/ws/live", "/nothing/here.png"])
    async def test_preflight_returns_empty_cors_response(self, static_root, path) -> None:
        api_proxy = FakeApiProxy(web.Response(text="unused"))
        async with relay_client(static_root, api_proxy) as client:
            resp = await client.options(path)

            assert resp.status == 200
            assert await resp.read() == b""
            assert_cors(resp.headers)
        assert api_proxy.requests == []


class TestStatic:
    @pytest.mark.asyncio
    async def test_root_and_index_are_the_same_document(self, static_root) -> None:
        async with relay_client(static_root) as client:
            root = await client.get("/")
            index = await client.get("/index.html")

            assert root.status == index.status == 200
            assert await root.read() == await index.read() == b"<h1>live</h1>"
            assert root.headers["Content-Type"] == "text/html; charset=UTF-8"
            assert index.headers["Content-Type"] == root.headers["Content-Type"]
            assert_cors(root.headers)

    @pytest.mark.asyncio
    async def test_png_content_type(self, static_root) -> None:
        async with relay_client(static_root) as client:
            resp = await client.get("/logo.png")

            assert resp.status == 200
            assert await resp.read() == PNG_BYTES
            assert resp.headers["Content-Type"] == "image/png; charset=UTF-8"

    @pytest.mark.asyncio
    async def test_unknown_extension_is_plain_text(self, static_root) -> None:
        async with relay_client(static_root) as client:
            resp = await client.get("/notes.xyz")

            assert resp.status == 200
            assert resp.headers["Content-Type"] == "text/plain; charset=UTF-8"

    @pytest.mark.asyncio
    async def test_nested_path(self, static_root) -> None:
        async with relay_client(static_root) as client:
            resp = await client.get("/js/app.js")

            assert resp.status == 200
            assert resp.headers["Content-Type"] == "application/javascript; charset=UTF-8"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/missing.css", "/js", "/deep/missing/file.png", "/a%00b.png"])
    async def test_missing_resource_is_404(self, static_root, path) -> None:
        async with relay_client(static_root) as client:
            resp = await client.get(path)

            assert resp.status == 404
            assert await resp.text() == "Not Found"
            assert resp.headers["Content-Type"] == "text/plain; charset=UTF-8"
            assert_cors(resp.headers)


class TestStaticStore:
    def test_traversal_rejected(self, static_root) -> None:
        store = StaticStore(static_root)
        with pytest.raises(StaticResourceNotFound):
            store.resolve("/../secret.txt")

    def test_embedded_null_byte_rejected(self, static_root) -> None:
        store = StaticStore(static_root)
        with pytest.raises(StaticResourceNotFound):
            store.resolve("/a\x00b.png")

    @pytest.mark.asyncio
    async def test_read_traversal_is_not_found(self, static_root) -> None:
        store = StaticStore(static_root)
        with pytest.raises(StaticResourceNotFound):
            await store.read("/../secret.txt")

    def test_index_mapping(self, static_root) -> None:
        store = StaticStore(static_root, index_document="index.html")
        assert store.resolve("/") == store.resolve("/index.html") == static_root.resolve() / "index.html"

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/a.js", "application/javascript; charset=UTF-8"),
            ("/a.CSS", "text/css; charset=UTF-8"),
            ("/a.json", "application/json; charset=UTF-8"),
            ("/a.jpg", "image/jpeg; charset=UTF-8"),
            ("/a.jpeg", "image/jpeg; charset=UTF-8"),
            ("/a.gif", "image/gif; charset=UTF-8"),
            ("/a.xyz", "text/plain; charset=UTF-8"),
            ("/no-extension", "text/plain; charset=UTF-8"),
            ("/dir.d/file", "text/plain; charset=UTF-8"),
        ],
    )
    def test_content_type_for(self, path, expected) -> None:
        assert content_type_for(path) == expected


class TestApiDispatch:
    @pytest.mark.parametrize(
        ("path", "suffix"),
        [
            ("/v1/chat/completions", "/chat/completions"),
            ("/v1beta/openai/embeddings", "/embeddings"),
            ("/models", "/models"),
            ("/v1/models/extra", None),
            ("/index.html", None),
        ],
    )
    def test_match_api_suffix(self, path, suffix) -> None:
        assert match_api_suffix(path) == suffix

    @pytest.mark.asyncio
    async def test_models_dispatched_with_status_preserved(self, static_root) -> None:
        api_proxy = FakeApiProxy(web.json_response({"data": []}, status=203))
        async with relay_client(static_root, api_proxy) as client:
            resp = await client.get("/v1/models?pageSize=5")

            assert resp.status == 203
            assert await resp.json() == {"data": []}
            assert_cors(resp.headers)
        assert api_proxy.requests == [("GET", "/v1/models?pageSize=5", b"")]

    @pytest.mark.asyncio
    async def test_request_body_reaches_proxy(self, static_root) -> None:
        api_proxy = FakeApiProxy(web.json_response({"id": "chatcmpl-1"}))
        async with relay_client(static_root, api_proxy) as client:
            resp = await client.post("/v1/chat/completions", data=b'{"model": "gemini"}')

            assert resp.status == 200
        assert api_proxy.requests == [("POST", "/v1/chat/completions", b'{"model": "gemini"}')]

    @pytest.mark.asyncio
    async def test_proxy_error_status_and_message(self, static_root) -> None:
        api_proxy = FakeApiProxy(error=ApiProxyError("Quota exceeded", status=429))
        async with relay_client(static_root, api_proxy) as client:
            resp = await client.post("/v1/embeddings", data=b"{}")

            assert resp.status == 429
            assert await resp.text() == "Quota exceeded"
            assert resp.headers["Content-Type"] == "text/plain; charset=UTF-8"
            assert_cors(resp.headers)

    @pytest.mark.asyncio
    async def test_proxy_error_without_status_is_500(self, static_root) -> None:
        api_proxy = FakeApiProxy(error=RuntimeError("worker crashed"))
        async with relay_client(static_root, api_proxy) as client:
            resp = await client.get("/v1/models")

            assert resp.status == 500
            assert await resp.text() == "worker crashed"
            assert_cors(resp.headers)

    @pytest.mark.asyncio
    async def test_api_proxy_error_with_none_status_is_500(self, static_root) -> None:
        api_proxy = FakeApiProxy(error=ApiProxyError("no status"))
        async with relay_client(static_root, api_proxy) as client:
            resp = await client.get("/models")

            assert resp.status == 500
            assert await resp.text() == "no status"
