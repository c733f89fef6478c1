"""Row-to-dataclass mapping with type coercion.

SQLite hands back ``int`` for booleans and sometimes ``str`` for numbers.
A mapper built for a dataclass coerces each column to the field's
annotation (``X | None`` unwraps to ``X``) and ignores extra columns, so
``SELECT *`` is fine even when the dataclass has fewer fields.
"""

import dataclasses
import types
from collections.abc import Callable, Mapping
from typing import Any, get_args, get_origin, get_type_hints

_COERCIBLE: dict[type, Callable[[Any], Any]] = {
    int: lambda v: int(v) if v != "" else 0,
    float: lambda v: float(v) if v != "" else 0.0,
    bool: lambda v: bool(int(v)) if isinstance(v, str) else bool(v),
    str: str,
}


def _target(annotation: Any) -> type | None:
    if get_origin(annotation) is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        annotation = args[0] if len(args) == 1 else None
    return annotation if annotation in _COERCIBLE else None


def row_mapper[T](cls: type[T]) -> Callable[[Mapping[str, Any]], T]:
    """Build a function turning one row mapping into a ``cls`` instance.

    Raises ``TypeError`` if *cls* is not a dataclass. The returned
    mapper raises ``TypeError`` when a required field is missing.
    """
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} is not a dataclass; perch.data maps rows onto dataclasses"
        raise TypeError(msg)

    hints = get_type_hints(cls)
    targets = {f.name: _target(hints.get(f.name)) for f in dataclasses.fields(cls)}

    def map_row(row: Mapping[str, Any]) -> T:
        values: dict[str, Any] = {}
        for name, value in row.items():
            if name not in targets:
                continue
            target = targets[name]
            if target is not None and value is not None and not isinstance(value, target):
                value = _COERCIBLE[target](value)
            values[name] = value
        return cls(**values)

    return map_row
