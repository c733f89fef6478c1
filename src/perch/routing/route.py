"""Route, PathSegment and RouteMatch frozen dataclasses."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/books``         (is_param=False)
    Param:   ``/{title}``       (is_param=True, param_name="title")
    Typed:   ``/{page:int}``    (is_param=True, param_name="page", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"

    @property
    def shape(self) -> str:
        """Segment identity for ambiguity checks: names don't matter, types do."""
        return f"{{:{self.param_type}}}" if self.is_param else self.value


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Registered during app setup, compiled into the router at freeze time.
    """

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful dispatch: the route and its bound placeholders."""

    route: Route
    path_params: dict[str, str]

    @property
    def handler(self) -> Callable[..., Any]:
        return self.route.handler
