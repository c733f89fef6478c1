"""Read-only multi-value mappings for headers and query strings.

Both behave as ``Mapping[str, str]`` (first value wins) and expose
``get_list`` for repeated keys. Built once per request from ASGI data.
"""

from collections.abc import Iterable, Iterator, Mapping
from urllib.parse import parse_qsl


class MultiDict(Mapping[str, str]):
    """Immutable ``str -> [str, ...]`` mapping.

    ``__getitem__`` returns the first value for a key.
    ``get_list`` returns all values for a key, in arrival order.
    """

    __slots__ = ("_data",)

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        data: dict[str, list[str]] = {}
        for key, value in pairs:
            data.setdefault(self._normalize(key), []).append(value)
        self._data = data

    @staticmethod
    def _normalize(key: str) -> str:
        return key

    def __getitem__(self, key: str) -> str:
        return self._data[self._normalize(key)][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._normalize(key) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(self._normalize(key))
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (empty list when missing)."""
        return list(self._data.get(self._normalize(key), ()))


class Headers(MultiDict):
    """Case-insensitive HTTP request headers.

    Keys are stored lower-cased; ASGI delivers them as latin-1 bytes.
    """

    __slots__ = ()

    @staticmethod
    def _normalize(key: str) -> str:
        return key.lower()

    @classmethod
    def from_raw(cls, raw: Iterable[tuple[bytes, bytes]]) -> "Headers":
        """Build headers from ASGI ``(name, value)`` byte pairs."""
        return cls((name.decode("latin-1"), value.decode("latin-1")) for name, value in raw)


class QueryParams(MultiDict):
    """Parsed query string. Blank values are kept (``?flag=`` → ``""``)."""

    __slots__ = ("raw",)

    def __init__(self, query_string: bytes | str = b"") -> None:
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")
        self.raw = query_string
        super().__init__(parse_qsl(query_string, keep_blank_values=True))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default
