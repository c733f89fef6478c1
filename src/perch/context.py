"""Request-scoped context store.

Every request owns exactly one ``RequestContext``. It is created by the
server pipeline alongside the ``Request``, travels with it through every
middleware and the terminal handler, and is closed once the response
has been sent.

Two jobs:

- A key/value store so outer middleware can hand data (the current
  user, a database session) to inner middleware and the handler::

      async def who(request: Request, next: Next) -> Response:
          request.context.set("user", "alice")
          return await next(request)

      @app.route("/me")
      def me(request: Request):
          return request.context.get("user")

- An exit stack for scoped resources. Anything entered with
  ``enter_async_context`` or registered with ``callback`` is released in
  LIFO order when the request completes, whether the handler succeeded
  or raised::

      session = await request.context.enter_async_context(db.session())

Concurrency:
    Contexts are never shared. Two concurrent requests always see two
    distinct instances, so no locks are needed.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING, Any

from perch.errors import ContextClosedError, ContextLookupError

if TYPE_CHECKING:
    from perch.http.request import Request


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class RequestContext:
    """Per-request key/value store with scoped cleanup."""

    __slots__ = ("_closed", "_stack", "_values")

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._stack = AsyncExitStack()
        self._closed = False

    # -- Key/value access --

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any earlier value."""
        self._check_open()
        self._values[key] = value

    def get(self, key: str, default: Any = MISSING) -> Any:
        """Return the value for *key*.

        Raises ``ContextLookupError`` (a ``KeyError``) when the key was
        never set and no *default* is given.
        """
        self._check_open()
        try:
            return self._values[key]
        except KeyError:
            if default is MISSING:
                raise ContextLookupError(key) from None
            return default

    def pop(self, key: str, default: Any = MISSING) -> Any:
        """Remove *key* and return its value."""
        self._check_open()
        if default is MISSING:
            try:
                return self._values.pop(key)
            except KeyError:
                raise ContextLookupError(key) from None
        return self._values.pop(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<RequestContext {state} keys={sorted(self._values)!r}>"

    # -- Scoped resources --

    async def enter_async_context[T](self, cm: AbstractAsyncContextManager[T]) -> T:
        """Enter *cm* now and exit it when the request completes."""
        self._check_open()
        return await self._stack.enter_async_context(cm)

    def callback(self, func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        """Call ``func(*args, **kwargs)`` when the request completes."""
        self._check_open()
        self._stack.callback(func, *args, **kwargs)

    def push_async_callback(
        self, func: Callable[..., Awaitable[Any]], /, *args: Any, **kwargs: Any
    ) -> None:
        """Await ``func(*args, **kwargs)`` when the request completes."""
        self._check_open()
        self._stack.push_async_callback(func, *args, **kwargs)

    # -- Lifecycle --

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Release every scoped resource, newest first.

        Idempotent: the second and later calls do nothing. Values are
        dropped so nothing outlives the request.
        """
        if self._closed:
            return
        self._closed = True
        try:
            await self._stack.aclose()
        finally:
            self._values.clear()

    def _check_open(self) -> None:
        if self._closed:
            msg = "request context is closed; the request has already completed"
            raise ContextClosedError(msg)


@asynccontextmanager
async def scoped_context() -> AsyncIterator[RequestContext]:
    """Yield a fresh context and close it afterwards.

    Used by the server pipeline and handy in tests that exercise
    middleware directly.
    """
    context = RequestContext()
    try:
        yield context
    finally:
        await context.aclose()


# -- Call-site helpers --


def set_value(request: Request, key: str, value: Any) -> None:
    """Store *value* in the context of *request*."""
    request.context.set(key, value)


def get_value(request: Request, key: str, default: Any = MISSING) -> Any:
    """Read *key* from the context of *request*."""
    return request.context.get(key, default)
