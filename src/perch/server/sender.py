"""ASGI response sending: translates perch responses to ASGI messages.

Single-body responses always carry an exact ``content-length``.
Streaming responses keep a ``Content-Length`` the producer set (static
files do) and otherwise fall back to chunked transfer encoding.
"""

import logging
from collections.abc import AsyncIterator, Iterable

from perch._internal.asgi import Send
from perch.http.response import AnyResponse, Response, StreamingResponse

logger = logging.getLogger("perch.server")

type RawHeaders = list[tuple[bytes, bytes]]


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC 9110: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def _raw_headers(content_type: str, headers: Iterable[tuple[str, str]]) -> RawHeaders:
    raw: RawHeaders = [(b"content-type", content_type.encode("latin-1"))]
    for name, value in headers:
        lowered = name.lower()
        if lowered in ("content-type", "content-length"):
            continue
        raw.append((lowered.encode("latin-1"), value.encode("latin-1")))
    return raw


def _encode_chunk(chunk: str | bytes) -> bytes:
    return chunk.encode("utf-8") if isinstance(chunk, str) else chunk


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Translate a ``Response`` into ASGI ``send()`` calls.

    For ``HEAD`` requests the headers (including the length the body
    would have had) are sent without the body.
    """
    raw_headers = _raw_headers(response.content_type, response.headers)
    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})
    await send({"type": "http.response.body", "body": b"" if head else body})


async def send_streaming_response(
    response: StreamingResponse,
    send: Send,
    *,
    head: bool = False,
) -> None:
    """Send a streaming response chunk by chunk.

    A failure after the headers went out can no longer change the
    status; it is logged and the body is closed early.
    """
    raw_headers = _raw_headers(response.content_type, response.headers)
    length = response.header("content-length")
    if length is not None:
        raw_headers.append((b"content-length", length.encode("latin-1")))
    elif not head:
        raw_headers.append((b"transfer-encoding", b"chunked"))

    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})

    if not head and _body_allowed(response.status):
        try:
            if isinstance(response.chunks, AsyncIterator):
                async for chunk in response.chunks:
                    if chunk:
                        await send(
                            {"type": "http.response.body", "body": _encode_chunk(chunk), "more_body": True}
                        )
            else:
                for chunk in response.chunks:
                    if chunk:
                        await send(
                            {"type": "http.response.body", "body": _encode_chunk(chunk), "more_body": True}
                        )
        except Exception:
            logger.exception("Streaming body failed after headers were sent")

    await send({"type": "http.response.body", "body": b"", "more_body": False})


async def send_any(response: AnyResponse, send: Send, *, head: bool = False) -> None:
    """Dispatch on the response type."""
    if isinstance(response, StreamingResponse):
        await send_streaming_response(response, send, head=head)
    else:
        await send_response(response, send, head=head)
