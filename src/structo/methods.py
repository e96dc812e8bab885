"""Per-type table of getter and setter methods taking part in copies."""

from __future__ import annotations

import functools
import inspect
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .cache import TypeCache
from .typeutils import is_assignable

# Framework base classes whose methods never take part in a copy
_SKIPPED_PACKAGES = ("builtins", "pydantic", "sqlalchemy", "typing", "abc")

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass(frozen=True)
class Getter:
    """A property or zero-argument method providing a value."""

    name: str
    is_method: bool

    def read(self, obj: Any) -> Any:
        value = getattr(obj, self.name)
        return value() if self.is_method else value


@dataclass(frozen=True)
class Setter:
    """A single-argument method accepting a value."""

    name: str
    annotation: Any = Any

    def accepts(self, value: Any) -> bool:
        return is_assignable(value, self.annotation)

    def call(self, obj: Any, value: Any) -> None:
        getattr(obj, self.name)(value)


@dataclass(frozen=True)
class MethodTable:
    getters: Mapping[str, Getter]
    setters: Mapping[str, Setter]


def _parameters(func: Any) -> list[inspect.Parameter] | None:
    try:
        params = list(inspect.signature(func).parameters.values())
    except (TypeError, ValueError):
        return None
    return params[1:]  # drop self


def _setter_annotation(func: Any, param: inspect.Parameter) -> Any:
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError, AttributeError):
        return Any
    return hints.get(param.name, Any)


def _build_method_table(tp: type) -> MethodTable:
    getters: dict[str, Getter] = {}
    setters: dict[str, Setter] = {}

    # Base classes first so subclasses override
    for klass in reversed(tp.__mro__):
        if klass.__module__.split(".")[0] in _SKIPPED_PACKAGES:
            continue
        for name, attr in vars(klass).items():
            if name.startswith("_"):
                continue
            getters.pop(name, None)
            setters.pop(name, None)

            if isinstance(attr, (property, functools.cached_property)):
                getters[name] = Getter(name, is_method=False)
                continue
            if not inspect.isfunction(attr):
                continue

            params = _parameters(attr)
            if params is None:
                continue
            required = [p for p in params if p.default is inspect.Parameter.empty]
            if not required and all(p.kind in _POSITIONAL for p in params):
                getters[name] = Getter(name, is_method=True)
            elif len(params) == 1 and params[0].kind in _POSITIONAL:
                setters[name] = Setter(name, _setter_annotation(attr, params[0]))

    return MethodTable(getters=getters, setters=setters)


_method_tables: TypeCache[MethodTable] = TypeCache(_build_method_table)


def method_table(tp: type) -> MethodTable:
    """
    Return the getter/setter table of a type, built once and cached.

    Getters are properties and methods callable without arguments; setters
    are methods taking exactly one positional argument. Names starting with
    an underscore and methods inherited from framework base classes are left
    out.
    """
    return _method_tables.get(tp)
