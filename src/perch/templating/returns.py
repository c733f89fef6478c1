"""Template return types.

Frozen dataclasses that handlers return. Content negotiation renders
them with the app's kida environment.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Template:
    """Render a template file from the app's template directory.

    Usage::

        return Template("todos.html", title="Todo", items=items)
    """

    name: str
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(self, name: str, /, **context: Any) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "context", context)


@dataclass(frozen=True, slots=True)
class InlineTemplate:
    """Render a template from a source string.

    Usage::

        return InlineTemplate("<h1>{{ title }}</h1>", title="Hello")
    """

    source: str
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(self, source: str, /, **context: Any) -> None:
        object.__setattr__(self, "source", source)
        object.__setattr__(self, "context", context)
