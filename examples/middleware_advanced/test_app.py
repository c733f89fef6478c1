"""Tests for the advanced middleware example."""

import logging

import pytest

from perch.testing import TestClient


class TestMiddlewareAdvancedApp:
    async def test_get_passes_the_whole_chain(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/")
            assert response.status == 200
            assert response.text == "hello world"
            assert response.header("x-elapsed") is not None

    async def test_security_headers_on_every_response(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/")
            assert response.header("x-frame-options") == "DENY"
            assert response.header("x-content-type-options") == "nosniff"

    async def test_post_rejected_by_method_guard(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.post("/")
            assert response.status == 405
            assert response.header("allow") == "GET, HEAD"
            # Inner middleware never ran
            assert response.header("x-elapsed") is None
            assert response.header("x-frame-options") == "DENY"

    async def test_rejections_are_logged(
        self, example_app, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="perch.access")
        async with TestClient(example_app) as client:
            await client.post("/")
        assert any("POST / 405" in r.getMessage() for r in caplog.records)

    async def test_me_requires_token(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/me")
            assert response.status == 401
            assert response.header("www-authenticate") == 'Bearer realm="example"'

    async def test_me_rejects_unknown_token(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/me", headers={"Authorization": "Bearer nope"})
            assert response.status == 401

    async def test_me_reads_user_from_context(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/me", headers={"Authorization": "Bearer s3cret"})
            assert response.status == 200
            assert response.text == "hello alice"
