"""Static file serving middleware.

Maps a URL prefix onto a directory and streams matching files verbatim
with a content type guessed from the file name. Paths that don't match
the prefix, and files that don't exist, fall through to the next
handler so the router can answer (usually with a 404).
"""

import mimetypes
from collections.abc import AsyncIterator
from pathlib import Path
from urllib.parse import quote

import anyio

from perch.http.request import Request
from perch.http.response import Response, StreamingResponse
from perch.middleware.protocol import AnyResponse, Next

CHUNK_SIZE = 64 * 1024


async def iter_file(path: Path, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield a file's bytes in chunks without blocking the event loop."""
    async with await anyio.open_file(path, "rb") as f:
        while chunk := await f.read(chunk_size):
            yield chunk


class StaticFiles:
    """Middleware that serves static files from a directory.

    Security: the requested path is resolved (symlinks included) and
    must stay inside the configured directory. Anything that escapes it,
    e.g. ``/static/../app.py``, is answered with 403 and never read.

    Usage::

        app.add_middleware(StaticFiles(directory="./static", prefix="/static"))
    """

    __slots__ = ("_cache_control", "_chunk_size", "_directory", "_index", "_prefix")

    def __init__(
        self,
        directory: str | Path,
        prefix: str = "/static",
        *,
        index: str = "index.html",
        cache_control: str = "public, max-age=3600",
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self._directory = Path(directory).resolve()
        self._index = index
        self._cache_control = cache_control
        self._chunk_size = chunk_size

        # Normalize prefix: ensure leading slash, strip trailing.
        # Root prefix "/" normalizes to "" (every path is a candidate).
        stripped = "/" + prefix.strip("/")
        self._prefix = stripped if stripped != "/" else ""

    @property
    def directory(self) -> Path:
        return self._directory

    def resolve(self, path: str) -> Path | None:
        """Map a URL path to a file system path under the root.

        Returns ``None`` when *path* is outside the prefix. Raises
        ``PermissionError`` when the resolved path escapes the root.
        """
        if self._prefix:
            if not path.startswith(self._prefix + "/") and path != self._prefix:
                return None
            relative = path[len(self._prefix) :].lstrip("/")
        else:
            relative = path.lstrip("/")

        try:
            file_path = (self._directory / relative).resolve() if relative else self._directory
        except ValueError as exc:  # e.g. embedded NUL byte
            raise PermissionError(path) from exc
        if not file_path.is_relative_to(self._directory):
            raise PermissionError(path)
        return file_path

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        """Serve a static file or fall through."""
        if request.method not in ("GET", "HEAD"):
            return await next(request)

        try:
            file_path = self.resolve(request.path)
        except PermissionError:
            return Response(body="Forbidden", status=403, content_type="text/plain; charset=utf-8")
        if file_path is None:
            return await next(request)

        if file_path.is_dir():
            index_path = file_path / self._index
            if not index_path.is_file():
                return await next(request)
            # Relative links in the index page need the trailing slash
            if not request.path.endswith("/"):
                return Response(body="", status=301).with_header("Location", quote(request.path + "/"))
            file_path = index_path

        if not file_path.is_file():
            return await next(request)

        return self._serve_file(file_path)

    def _serve_file(self, file_path: Path) -> StreamingResponse:
        content_type, _ = mimetypes.guess_type(file_path.name)
        if content_type is None:
            content_type = "application/octet-stream"
        elif content_type.startswith("text/") or content_type == "application/javascript":
            content_type += "; charset=utf-8"

        return StreamingResponse(
            chunks=iter_file(file_path, self._chunk_size),
            content_type=content_type,
        ).with_headers(
            {
                "Content-Length": str(file_path.stat().st_size),
                "Cache-Control": self._cache_control,
            }
        )
