"""Compiled router with trie-based path matching.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes.

Matching policy, per path segment:

1. A literal segment matches only itself and always wins.
2. Placeholder edges (``{name}``, ``{name:int}``) are tried in the order
   their routes were registered; the first edge that leads to a full
   match wins.
3. A trailing ``{name:path}`` consumes the rest of the path.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from perch.errors import ConfigurationError, MethodNotAllowed, NotFound
from perch.routing.params import PARAM_NAME, SEGMENT_PATTERNS, segment_matches
from perch.routing.route import PathSegment, Route, RouteMatch


def _malformed(path: str, reason: str) -> ConfigurationError:
    return ConfigurationError(f"Malformed route pattern {path!r}: {reason}")


def parse_path(path: str) -> list[PathSegment]:
    """Parse and validate a route pattern.

    Examples::

        "/books"               -> [PathSegment("books")]
        "/books/{title}"       -> [PathSegment("books"), PathSegment("{title}", is_param=True, ...)]
        "/page/{n:int}"        -> [..., PathSegment("{n:int}", is_param=True, param_type="int")]
        "/files/{rest:path}"   -> [..., PathSegment("{rest:path}", is_param=True, param_type="path")]

    Raises ``ConfigurationError`` for anything else that looks like a
    placeholder but isn't one.
    """
    if not path.startswith("/"):
        raise _malformed(path, "patterns must start with '/'")

    segments: list[PathSegment] = []
    seen_names: set[str] = set()
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if segments and segments[-1].is_param and segments[-1].param_type == "path":
            raise _malformed(path, "a {name:path} placeholder must be the last segment")
        if "<" in part or ">" in part:
            msg = (
                f"Route {path!r} uses <param> syntax. "
                "Use {param} placeholders instead, e.g. /books/{title}."
            )
            raise ConfigurationError(msg)
        if not (part.startswith("{") and part.endswith("}")):
            if "{" in part or "}" in part:
                raise _malformed(path, f"segment {part!r} mixes text and a placeholder")
            segments.append(PathSegment(value=part))
            continue

        inner = part[1:-1]
        param_name, _, param_type = inner.partition(":")
        param_type = param_type or "str"
        if not PARAM_NAME.fullmatch(param_name):
            raise _malformed(path, f"invalid placeholder name {param_name!r}")
        if param_type not in SEGMENT_PATTERNS:
            known = ", ".join(sorted(SEGMENT_PATTERNS))
            raise _malformed(path, f"unknown converter {param_type!r} (known: {known})")
        if param_name in seen_names:
            raise _malformed(path, f"placeholder {param_name!r} appears twice")
        seen_names.add(param_name)
        segments.append(
            PathSegment(value=part, is_param=True, param_name=param_name, param_type=param_type)
        )
    return segments


@dataclass(slots=True)
class _Entry:
    """A route registered at a trie node, with its own parsed segments."""

    route: Route
    segments: list[PathSegment]


class _TrieNode:
    """A node in the route trie. Mutable during registration only."""

    __slots__ = ("catch_all", "children", "param_edges", "routes_by_method")

    def __init__(self) -> None:
        # Literal segment children: "books" -> node
        self.children: dict[str, _TrieNode] = {}
        # Placeholder edges in registration order, one per converter type
        self.param_edges: list[_ParamEdge] = []
        # Catch-all routes ({name:path}) keyed by method
        self.catch_all: dict[str, _Entry] = {}
        # Routes ending at this node, keyed by HTTP method
        self.routes_by_method: dict[str, _Entry] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A placeholder edge in the trie."""

    param_type: str
    node: _TrieNode = field(default_factory=_TrieNode)


class Router:
    """Explicit route table.

    Usage::

        router = Router()
        router.register("/books/{title}/page/{page}", read_page)
        router.compile()
        match = router.dispatch("/books/dune/page/10", "GET")
        match.path_params  # {"title": "dune", "page": "10"}
    """

    __slots__ = ("_compiled", "_names", "_root", "_routes", "_shapes")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False
        self._routes: list[Route] = []
        self._names: dict[str, Route] = {}
        self._shapes: set[tuple[tuple[str, ...], str]] = set()

    def register(
        self,
        pattern: str,
        handler: Callable[..., Any],
        *,
        methods: tuple[str, ...] | list[str] | frozenset[str] = ("GET",),
        name: str | None = None,
    ) -> Route:
        """Create and add a route. Returns the frozen ``Route``."""
        route = Route(
            path=pattern,
            handler=handler,
            methods=frozenset(m.upper() for m in methods),
            name=name,
        )
        self.add(route)
        return route

    def add(self, route: Route) -> None:
        """Add a route. Must be called before ``compile()``.

        Raises ``ConfigurationError`` when the pattern is malformed or
        when the same method is already registered on an identical
        pattern shape.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        if not route.methods:
            msg = f"Route {route.path!r} must accept at least one method."
            raise ConfigurationError(msg)

        segments = parse_path(route.path)
        shape = tuple(seg.shape for seg in segments)
        for method in route.methods:
            if (shape, method) in self._shapes:
                msg = f"Route conflict: {method} {route.path!r} duplicates an existing pattern."
                raise ConfigurationError(msg)
        if route.name is not None and route.name in self._names:
            msg = f"Route name {route.name!r} is already used by {self._names[route.name].path!r}."
            raise ConfigurationError(msg)

        entry = _Entry(route=route, segments=segments)
        node = self._root
        for seg in segments:
            if seg.is_param and seg.param_type == "path":
                for method in route.methods:
                    node.catch_all[method] = entry
                break
            if seg.is_param:
                node = self._param_child(node, seg.param_type)
            else:
                node = node.children.setdefault(seg.value, _TrieNode())
        else:
            for method in route.methods:
                node.routes_by_method[method] = entry

        self._shapes.update((shape, method) for method in route.methods)
        self._routes.append(route)
        if route.name is not None:
            self._names[route.name] = route

    @staticmethod
    def _param_child(node: _TrieNode, param_type: str) -> _TrieNode:
        for edge in node.param_edges:
            if edge.param_type == param_type:
                return edge.node
        edge = _ParamEdge(param_type=param_type)
        node.param_edges.append(edge)
        return edge.node

    @property
    def routes(self) -> list[Route]:
        """All registered routes, in registration order."""
        return list(self._routes)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    @property
    def compiled(self) -> bool:
        return self._compiled

    # -- Dispatch --

    def dispatch(self, path: str, method: str) -> RouteMatch:
        """Select the route for *path* and *method*.

        Returns a ``RouteMatch`` with the bound placeholders.
        Raises ``NotFound`` if no pattern matches the path.
        Raises ``MethodNotAllowed`` if patterns match but none accepts
        the method. ``HEAD`` falls back to ``GET`` routes.
        """
        method = method.upper()
        parts = [p for p in path.strip("/").split("/") if p]
        allowed: set[str] = set()

        for entries in self._candidates(self._root, parts, 0):
            entry = entries.get(method)
            if entry is None and method == "HEAD":
                entry = entries.get("GET")
            if entry is not None:
                return RouteMatch(route=entry.route, path_params=_bind(entry.segments, parts))
            allowed.update(entries)

        if allowed:
            if "GET" in allowed:
                allowed.add("HEAD")
            raise MethodNotAllowed(frozenset(allowed))
        raise NotFound(f"No route matches {method} {path!r}")

    def _candidates(self, node: _TrieNode, parts: list[str], index: int):
        """Yield method tables of every node matching *parts*, best first."""
        if index == len(parts):
            if node.routes_by_method:
                yield node.routes_by_method
            return

        part = parts[index]
        child = node.children.get(part)
        if child is not None:
            yield from self._candidates(child, parts, index + 1)

        for edge in node.param_edges:
            if segment_matches(edge.param_type, part):
                yield from self._candidates(edge.node, parts, index + 1)

        if node.catch_all:
            yield node.catch_all

    # -- Reverse routing --

    def url_for(self, name: str, /, **params: Any) -> str:
        """Build a path for the route registered as *name*.

        Raises ``KeyError`` for an unknown name or a missing placeholder.
        """
        route = self._names[name]
        parts: list[str] = []
        for seg in parse_path(route.path):
            if not seg.is_param:
                parts.append(seg.value)
                continue
            value = str(params[seg.param_name or ""])
            safe = "/" if seg.param_type == "path" else ""
            parts.append(quote(value, safe=safe))
        return "/" + "/".join(parts)


def _bind(segments: list[PathSegment], parts: list[str]) -> dict[str, str]:
    """Map a route's placeholder names onto the matched path parts."""
    params: dict[str, str] = {}
    for i, seg in enumerate(segments):
        if not seg.is_param:
            continue
        if seg.param_type == "path":
            params[seg.param_name or "path"] = "/".join(parts[i:])
            break
        params[seg.param_name or ""] = parts[i]
    return params
