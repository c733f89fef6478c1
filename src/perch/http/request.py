"""Immutable HTTP request.

Frozen metadata with async body access, plus the per-request
``RequestContext`` that middleware use to hand data down the chain.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field, replace
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.context import RequestContext
from perch.errors import HTTPError
from perch.http.multidict import Headers, QueryParams


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    Body is read asynchronously via ``.body()``, ``.text()``, ``.json()``.
    ``context`` is the one mutable part: a store owned by this request.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    path_params: dict[str, str] = field(default_factory=dict)
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None
    context: RequestContext = field(default_factory=RequestContext, repr=False, compare=False)
    max_body_size: int | None = None

    # Private: ASGI receive callable for body streaming
    _receive: Receive = field(default=_empty_receive, repr=False, compare=False)

    # Private: mutable cache for the body (the dict is mutable, the field is not)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Request path plus query string."""
        if self.query.raw:
            return f"{self.path}?{self.query.raw}"
        return self.path

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        The ASGI receive channel is consumed once; later calls return the
        cached bytes. Raises ``HTTPError(413)`` past ``max_body_size``.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks: list[bytes] = []
        size = 0
        async for chunk in self.stream():
            size += len(chunk)
            if self.max_body_size is not None and size > self.max_body_size:
                raise HTTPError(status=413, detail="Request body too large")
            chunks.append(chunk)
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    async def json(self) -> Any:
        """Parse the body as JSON."""
        return json_module.loads(await self.body())

    # -- Derivation --

    def with_path_params(self, path_params: dict[str, str]) -> Request:
        """Return a copy carrying router bindings.

        The context and body cache are shared with the original, so data
        set by middleware stays visible to the handler.
        """
        return replace(self, path_params=path_params)

    # -- Factory --

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        receive: Receive,
        *,
        context: RequestContext | None = None,
        max_body_size: int | None = None,
    ) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=Headers.from_raw(scope.get("headers", ())),
            query=QueryParams(scope.get("query_string", b"")),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            context=context if context is not None else RequestContext(),
            max_body_size=max_body_size,
            _receive=receive,
        )
