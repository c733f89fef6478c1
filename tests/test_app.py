"""Tests for perch.app.App through the ASGI pipeline."""

import pytest

from perch.app import App
from perch.config import AppConfig
from perch.errors import ConfigurationError, HTTPError, NotFound
from perch.http.request import Request
from perch.http.response import Redirect, Response
from perch.templating import InlineTemplate, Template
from perch.testing import TestClient


class TestRoutes:
    async def test_string_return(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return "Hello"

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 200
            assert response.text == "Hello"
            assert response.content_type == "text/html; charset=utf-8"

    async def test_path_params_converted_by_annotation(self) -> None:
        app = App()

        @app.route("/books/{title}/page/{page}")
        def read(title: str, page: int):
            return {"title": title, "next": page + 1}

        async with TestClient(app) as client:
            response = await client.get("/books/dune/page/10")
            assert response.text == '{"title": "dune", "next": 11}'

    async def test_request_injected(self) -> None:
        app = App()

        @app.route("/echo", methods=["POST"])
        async def echo(request: Request):
            return await request.text()

        async with TestClient(app) as client:
            response = await client.post("/echo", body=b"ping")
            assert response.text == "ping"

    async def test_duplicate_route_fails_at_registration(self) -> None:
        app = App()

        @app.route("/books/{title}")
        def one(title: str):
            return title

        with pytest.raises(ConfigurationError):

            @app.route("/books/{name}")
            def two(name: str):
                return name

    async def test_url_for(self) -> None:
        app = App()

        @app.route("/books/{title}", name="book")
        def book(title: str):
            return title

        assert app.url_for("book", title="dune") == "/books/dune"

    async def test_cannot_register_after_freeze(self) -> None:
        app = App()
        async with TestClient(app):
            pass
        with pytest.raises(RuntimeError):
            app.add_middleware(lambda request, next: next(request))


class TestReturnValues:
    async def test_tuple_sets_status_and_headers(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return "Created", 201, {"X-Id": "7"}

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 201
            assert response.header("x-id") == "7"

    async def test_redirect(self) -> None:
        app = App()

        @app.route("/old")
        def old():
            return Redirect("/new", status=301)

        async with TestClient(app) as client:
            response = await client.get("/old")
            assert response.status == 301
            assert response.header("location") == "/new"

    async def test_none_is_no_content(self) -> None:
        app = App()

        @app.route("/", methods=["DELETE"])
        def delete():
            return None

        async with TestClient(app) as client:
            response = await client.delete("/")
            assert response.status == 204
            assert response.body == b""

    async def test_template_from_template_dir(self, tmp_path) -> None:
        (tmp_path / "page.html").write_text("<h1>{{ title }}</h1>")
        app = App(AppConfig(template_dir=tmp_path))

        @app.route("/")
        def index():
            return Template("page.html", title="<Dune>")

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.text == "<h1>&lt;Dune&gt;</h1>"

    async def test_inline_template(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return InlineTemplate("{{ a }}+{{ b }}", a=1, b=2)

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.text == "1+2"


class TestErrors:
    async def test_not_found(self) -> None:
        app = App()
        async with TestClient(app) as client:
            response = await client.get("/nothing")
            assert response.status == 404

    async def test_method_not_allowed_has_allow_header(self) -> None:
        app = App()

        @app.route("/books", methods=["GET", "POST"])
        def books():
            return "books"

        async with TestClient(app) as client:
            response = await client.put("/books")
            assert response.status == 405
            assert response.header("allow") == "GET, HEAD, POST"

    async def test_http_error_from_handler(self) -> None:
        app = App()

        @app.route("/teapot")
        def teapot():
            raise HTTPError(status=418, detail="short and stout")

        async with TestClient(app) as client:
            response = await client.get("/teapot")
            assert response.status == 418
            assert response.text == "short and stout"

    async def test_unexpected_error_is_500(self, caplog: pytest.LogCaptureFixture) -> None:
        app = App()

        @app.route("/")
        def index():
            raise RuntimeError("secret detail")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "secret detail" not in response.text
        assert any(r.name == "perch.server" and r.exc_info for r in caplog.records)

    async def test_debug_500_names_the_error_escaped(self) -> None:
        app = App(AppConfig(debug=True))

        @app.route("/")
        def index():
            raise RuntimeError("<b>bad</b>")

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 500
            assert "RuntimeError" in response.text
            assert "&lt;b&gt;bad&lt;/b&gt;" in response.text

    async def test_error_handler_by_status(self) -> None:
        app = App()

        @app.error(404)
        def not_found(request: Request):
            return f"Nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/missing")
            assert response.status == 404
            assert response.text == "Nothing at /missing"

    async def test_error_handler_by_exception_type(self) -> None:
        app = App()

        class OutOfStock(Exception):
            pass

        @app.route("/buy")
        def buy():
            raise OutOfStock("hats")

        @app.error(OutOfStock)
        def out_of_stock(request: Request, exc: OutOfStock):
            return Response(f"no more {exc}", status=409)

        async with TestClient(app) as client:
            response = await client.get("/buy")
            assert response.status == 409
            assert response.text == "no more hats"

    async def test_error_handler_for_base_class(self) -> None:
        app = App()

        @app.error(HTTPError)
        async def any_http_error(request: Request, exc: HTTPError):
            return f"handled {exc.status}"

        @app.route("/gone")
        def gone():
            raise NotFound("gone")

        async with TestClient(app) as client:
            response = await client.get("/gone")
            assert response.status == 404
            assert response.text == "handled 404"

    async def test_template_error_is_500(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return InlineTemplate("{% if %}")

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 500


class TestHead:
    async def test_head_uses_get_route_without_body(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return "Hello"

        async with TestClient(app) as client:
            response = await client.head("/")
            assert response.status == 200
            assert response.body == b""
            assert response.header("content-length") == "5"


class TestLifespan:
    async def test_hooks_run_in_order(self) -> None:
        app = App()
        events: list[str] = []

        @app.on_startup
        async def start():
            events.append("start")

        @app.on_shutdown
        def stop():
            events.append("stop")

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[str] = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert events == ["start", "stop"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    async def test_failed_startup_reported(self) -> None:
        app = App()

        @app.on_startup
        def start():
            raise RuntimeError("no db")

        sent: list[dict] = []

        async def receive():
            return {"type": "lifespan.startup"}

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent == [{"type": "lifespan.startup.failed", "message": "no db"}]


class TestRun:
    def test_bind_failure_exits_1(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(*args, **kwargs):
            raise OSError(98, "Address already in use")

        monkeypatch.setattr("perch.server.dev.run_dev_server", fail)
        app = App()
        with pytest.raises(SystemExit) as exc_info:
            app.run(port=8081)
        assert exc_info.value.code == 1
