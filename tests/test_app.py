"""Tests for the Waypoint ASGI adapter."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from waypoint import JSONResponse, PlainTextResponse, Response, Router, Waypoint, __version__
from waypoint._types import ASGIApp, ASGIMessage, ASGIScope, Middleware, RawHeaders, Receive, Send


def test_version() -> None:
    assert __version__ == "0.1.0"


def _make_client(app: Waypoint) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    )


class Movie(BaseModel):
    id: int
    title: str


# =====================================================================
# Rendering
# =====================================================================


@pytest.mark.asyncio
async def test_plain_text() -> None:
    app = Waypoint()
    app.get("/hello/(\\w+)", lambda name: f"Hello {name}")

    async with _make_client(app) as client:
        resp = await client.get("/hello/ada")
        assert resp.status_code == 200
        assert resp.text == "Hello ada"
        assert resp.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_dict_return_auto_json() -> None:
    app = Waypoint()
    app.get("/blog(/\\d{4}(/\\d{2})?)?", lambda year=None, month=None: {"year": year, "month": month})

    async with _make_client(app) as client:
        resp = await client.get("/blog/1983")
        assert resp.status_code == 200
        assert resp.json() == {"year": "1983", "month": None}


@pytest.mark.asyncio
async def test_pydantic_model_response() -> None:
    app = Waypoint()
    app.get("/movies/(\\d+)", lambda movie_id: Movie(id=int(movie_id), title="Alien"))

    async with _make_client(app) as client:
        resp = await client.get("/movies/7")
        assert resp.json() == {"id": 7, "title": "Alien"}


@pytest.mark.asyncio
async def test_response_passthrough() -> None:
    app = Waypoint()
    app.post("/items", lambda: JSONResponse({"created": True}, status_code=201, headers={"Location": "/items/1"}))
    app.get("/raw", lambda: Response(b"\x00\x01", media_type="application/x-raw"))

    async with _make_client(app) as client:
        resp = await client.post("/items")
        assert resp.status_code == 201
        assert resp.headers["location"] == "/items/1"

        resp = await client.get("/raw")
        assert resp.content == b"\x00\x01"
        assert resp.headers["content-type"] == "application/x-raw"


@pytest.mark.asyncio
async def test_none_gives_empty_body() -> None:
    app = Waypoint()
    app.delete("/items/(\\d+)", lambda item_id: None)

    async with _make_client(app) as client:
        resp = await client.delete("/items/1")
        assert resp.status_code == 200
        assert resp.content == b""


@pytest.mark.asyncio
async def test_async_handler() -> None:
    app = Waypoint()

    @app.get("/async")
    async def handler() -> dict:
        return {"async": True}

    async with _make_client(app) as client:
        resp = await client.get("/async")
        assert resp.json() == {"async": True}


@pytest.mark.asyncio
async def test_head_drops_body() -> None:
    app = Waypoint()
    app.get("/", lambda: "home")

    async with _make_client(app) as client:
        resp = await client.head("/")
        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["content-length"] == "4"


@pytest.mark.asyncio
async def test_method_override_header() -> None:
    app = Waypoint()
    app.put("/items", lambda: "replaced")

    async with _make_client(app) as client:
        resp = await client.post("/items", headers={"X-HTTP-Method-Override": "PUT"})
        assert resp.text == "replaced"


@pytest.mark.asyncio
async def test_mounted_routes() -> None:
    app = Waypoint()
    app.mount("/movies", lambda: app.get("/(\\d+)", lambda movie_id: {"id": movie_id}))

    async with _make_client(app) as client:
        resp = await client.get("/movies/42")
        assert resp.json() == {"id": "42"}


class Greeter:
    def hello(self, name: str) -> str:
        return f"Hi {name}"


@pytest.mark.asyncio
async def test_scoped_registration_on_app() -> None:
    app = Waypoint()
    app.register_controller(Greeter, name="admin.Greeter")
    app.prefix("/admin").namespace("admin").group(lambda: app.get("/hello/(\\w+)", "Greeter@hello"))
    app.group(lambda: app.get("/ping", lambda: "pong"), prefix="/api", domain="test")

    async with _make_client(app) as client:
        resp = await client.get("/admin/hello/ada")
        assert resp.text == "Hi ada"

        resp = await client.get("/api/ping")
        assert resp.text == "pong"

        resp = await client.get("/api/ping", headers={"host": "other.example"})
        assert resp.status_code == 404


@pytest.mark.asyncio
async def test_before_route_runs() -> None:
    seen: list[str] = []
    app = Waypoint()
    app.before("GET", "/.*", lambda: seen.append("before"))
    app.get("/", lambda: "home")

    async with _make_client(app) as client:
        await client.get("/")
        assert seen == ["before"]


# =====================================================================
# Not found and errors
# =====================================================================


@pytest.mark.asyncio
async def test_404() -> None:
    app = Waypoint()

    async with _make_client(app) as client:
        resp = await client.get("/nope")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_405_with_allow_header() -> None:
    app = Waypoint()
    app.get("/items", lambda: [])
    app.post("/items", lambda: {})

    async with _make_client(app) as client:
        resp = await client.delete("/items")
        assert resp.status_code == 405
        assert resp.headers["allow"] == "GET, POST"


@pytest.mark.asyncio
async def test_unresolvable_controller_gives_404_not_405() -> None:
    app = Waypoint()
    app.get("/x", "MissingController@index")

    async with _make_client(app) as client:
        resp = await client.get("/x")
        assert resp.status_code == 404
        assert "allow" not in resp.headers


@pytest.mark.asyncio
async def test_fallback_status_is_404() -> None:
    app = Waypoint()
    app.set404(lambda: "nothing here")
    app.set404("/api(/.*)?", lambda rest: {"detail": f"unknown endpoint {rest}"})

    async with _make_client(app) as client:
        resp = await client.get("/nope")
        assert resp.status_code == 404
        assert resp.text == "nothing here"

        resp = await client.get("/api/users")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "unknown endpoint users"}


@pytest.mark.asyncio
async def test_fallback_can_choose_status() -> None:
    app = Waypoint()
    app.set404(lambda: PlainTextResponse("gone", status_code=410))

    async with _make_client(app) as client:
        resp = await client.get("/old")
        assert resp.status_code == 410


@pytest.mark.asyncio
async def test_500_on_handler_error() -> None:
    app = Waypoint()

    def boom() -> None:
        raise RuntimeError("kaboom")

    app.get("/boom", boom)

    async with _make_client(app) as client:
        resp = await client.get("/boom")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal Server Error"}


@pytest.mark.asyncio
async def test_500_includes_traceback_in_debug() -> None:
    app = Waypoint(debug=True)

    async def boom() -> None:
        raise RuntimeError("kaboom")

    app.get("/boom", boom)

    async with _make_client(app) as client:
        resp = await client.get("/boom")
        assert resp.status_code == 500
        assert "kaboom" in resp.json()["traceback"]


# =====================================================================
# Middleware
# =====================================================================


@pytest.mark.asyncio
async def test_middleware() -> None:
    app = Waypoint()
    app.get("/mw", lambda: {"ok": True})

    def add_header_middleware(inner_app: ASGIApp) -> ASGIApp:
        async def middleware(scope: ASGIScope, receive: Receive, send: Send) -> None:
            async def custom_send(message: ASGIMessage) -> None:
                if message["type"] == "http.response.start":
                    headers: RawHeaders = list(message.get("headers", []))
                    assert all(isinstance(k, bytes) and isinstance(v, bytes) for k, v in headers)
                    headers.append((b"x-custom", b"yes"))
                    message = {**message, "headers": headers}
                await send(message)

            await inner_app(scope, receive, custom_send)

        return middleware

    wrap: Middleware = add_header_middleware
    app.add_middleware(wrap)

    async with _make_client(app) as client:
        resp = await client.get("/mw")
        assert resp.status_code == 200
        assert resp.headers["x-custom"] == "yes"


@pytest.mark.asyncio
async def test_serves_existing_router() -> None:
    router = Router()
    router.get("/", lambda: "from router")
    app = Waypoint(router)

    async with _make_client(app) as client:
        resp = await client.get("/")
        assert resp.text == "from router"


@pytest.mark.asyncio
async def test_last_middleware_runs_first() -> None:
    order: list[str] = []
    app = Waypoint()
    app.get("/", lambda: "home")

    def tag(name: str):
        def wrap(inner_app):
            async def middleware(scope, receive, send):
                order.append(name)
                await inner_app(scope, receive, send)

            return middleware

        return wrap

    app.add_middleware(tag("inner"))
    app.add_middleware(tag("outer"))

    async with _make_client(app) as client:
        await client.get("/")
        assert order == ["outer", "inner"]


# =====================================================================
# Lifespan
# =====================================================================


@pytest.mark.asyncio
async def test_lifespan_startup_freezes_routes() -> None:
    app = Waypoint()
    app.get("/", lambda: "home")
    messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
    sent: list[dict] = []

    async def receive() -> dict:
        return next(messages)

    async def send(message: dict) -> None:
        sent.append(message)

    await app({"type": "lifespan"}, receive, send)

    assert [m["type"] for m in sent] == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
    assert app.router.table.frozen
