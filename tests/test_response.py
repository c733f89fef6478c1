"""Tests for perch.http.response — chainable immutable responses."""

from perch.http.response import Response, StreamingResponse


class TestResponse:
    def test_defaults(self) -> None:
        response = Response()
        assert response.status == 200
        assert response.content_type == "text/html; charset=utf-8"
        assert response.headers == ()

    def test_with_methods_return_copies(self) -> None:
        original = Response("hi")
        changed = (
            original.with_status(201)
            .with_header("X-A", "1")
            .with_headers({"X-B": "2"})
            .with_content_type("text/plain")
        )
        assert original.status == 200
        assert original.headers == ()
        assert changed.status == 201
        assert changed.headers == (("X-A", "1"), ("X-B", "2"))
        assert changed.content_type == "text/plain"

    def test_header_lookup_is_case_insensitive(self) -> None:
        response = Response().with_header("X-Id", "7")
        assert response.header("x-id") == "7"
        assert response.header("x-other") is None

    def test_body_conversions(self) -> None:
        assert Response("é").body_bytes == "é".encode()
        assert Response("é".encode()).text == "é"


class TestStreamingResponse:
    def test_with_methods(self) -> None:
        response = StreamingResponse(iter(["a"])).with_status(206).with_header("X-A", "1")
        assert response.status == 206
        assert response.header("x-a") == "1"
