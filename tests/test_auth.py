"""Tests for perch.middleware.auth — bearer token auth and method guard."""

from perch.app import App
from perch.errors import Unauthorized
from perch.http.request import Request
from perch.middleware.auth import TokenAuth, require_method
from perch.testing import TestClient

TOKENS = {"good": "alice"}


def _app(auth: TokenAuth, calls: list[str]) -> App:
    app = App()
    app.add_middleware(auth)

    @app.route("/me")
    def me(request: Request):
        calls.append("me")
        return request.context.get("user")

    @app.route("/health")
    def health():
        calls.append("health")
        return "ok"

    return app


class TestTokenAuth:
    async def test_missing_token_short_circuits(self) -> None:
        calls: list[str] = []
        async with TestClient(_app(TokenAuth(TOKENS.get), calls)) as client:
            response = await client.get("/me")
        assert response.status == 401
        assert response.header("www-authenticate") == 'Bearer realm="perch"'
        assert calls == []

    async def test_rejection_mirrors_unauthorized_error(self) -> None:
        calls: list[str] = []
        async with TestClient(_app(TokenAuth(TOKENS.get, realm="books"), calls)) as client:
            response = await client.get("/me")
        expected = Unauthorized(realm="books")
        assert response.status == expected.status
        assert response.text == expected.detail
        assert response.header("www-authenticate") == dict(expected.headers)["WWW-Authenticate"]

    async def test_wrong_scheme_rejected(self) -> None:
        calls: list[str] = []
        async with TestClient(_app(TokenAuth(TOKENS.get), calls)) as client:
            response = await client.get("/me", headers={"Authorization": "Basic good"})
        assert response.status == 401
        assert calls == []

    async def test_invalid_token_rejected(self) -> None:
        calls: list[str] = []
        async with TestClient(_app(TokenAuth(TOKENS.get, realm="books"), calls)) as client:
            response = await client.get("/me", headers={"Authorization": "Bearer bad"})
        assert response.status == 401
        assert response.header("www-authenticate") == 'Bearer realm="books"'
        assert calls == []

    async def test_valid_token_sets_user(self) -> None:
        calls: list[str] = []
        async with TestClient(_app(TokenAuth(TOKENS.get), calls)) as client:
            response = await client.get("/me", headers={"Authorization": "Bearer good"})
        assert response.status == 200
        assert response.text == "alice"
        assert calls == ["me"]

    async def test_async_verifier(self) -> None:
        async def verify(token: str) -> str | None:
            return TOKENS.get(token)

        calls: list[str] = []
        async with TestClient(_app(TokenAuth(verify, key="user"), calls)) as client:
            response = await client.get("/me", headers={"Authorization": "bearer good"})
        assert response.text == "alice"

    async def test_exempt_prefix(self) -> None:
        calls: list[str] = []
        auth = TokenAuth(TOKENS.get, exempt=("/health",))
        async with TestClient(_app(auth, calls)) as client:
            response = await client.get("/health")
        assert response.status == 200
        assert calls == ["health"]

    async def test_exempt_covers_subpaths_only(self) -> None:
        app = App()
        app.add_middleware(TokenAuth(TOKENS.get, exempt=("/public",)))
        seen: list[str] = []

        @app.route("/public/{name}")
        def public(request: Request, name: str):
            seen.append(request.path)
            return name

        @app.route("/publicity/admin")
        def admin(request: Request):
            seen.append(request.path)
            return "admin"

        async with TestClient(app) as client:
            open_response = await client.get("/public/logo")
            guarded = await client.get("/publicity/admin")
        assert open_response.status == 200
        assert guarded.status == 401
        assert seen == ["/public/logo"]


class TestRequireMethod:
    async def test_rejects_unlisted_method(self) -> None:
        app = App()
        app.add_middleware(require_method("GET"))
        called: list[str] = []

        @app.route("/", methods=["GET", "POST"])
        def index():
            called.append("index")
            return "ok"

        async with TestClient(app) as client:
            rejected = await client.post("/")
            accepted = await client.get("/")
        assert rejected.status == 405
        assert rejected.header("allow") == "GET, HEAD"
        assert accepted.status == 200
        assert called == ["index"]

    async def test_get_admits_head(self) -> None:
        app = App()
        app.add_middleware(require_method("GET"))

        @app.route("/")
        def index():
            return "ok"

        async with TestClient(app) as client:
            response = await client.head("/")
        assert response.status == 200
        assert response.body == b""
