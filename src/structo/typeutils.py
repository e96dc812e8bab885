"""Helpers over typing constructs: indirection, assignability, conversion."""

from __future__ import annotations

import collections.abc as cabc
import types
import typing
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Annotated, Any, Literal, TypeVar, Union, get_args, get_origin

NoneType = type(None)

# Numeric types that convert into one another, mirroring numeric conversions
_NUMERIC_TYPES = (int, float, complex, Decimal, Fraction)

_TEXT_TYPES = (str, bytes, bytearray)


def strip_annotated(tp: Any) -> tuple[Any, tuple[Any, ...]]:
    """
    Remove ``Annotated[...]`` wrappers from a type.

    Returns
    -------
    tuple
        The bare type and the collected metadata objects, outermost first.
    """
    metadata: tuple[Any, ...] = ()
    while get_origin(tp) is Annotated:
        metadata += tuple(tp.__metadata__)
        tp = tp.__origin__
    return tp, metadata


def is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is types.UnionType


def is_newtype(tp: Any) -> bool:
    return isinstance(tp, typing.NewType)


def is_dynamic(tp: Any) -> bool:
    """
    True for types that accept any value: ``Any``, ``object``, missing
    annotations, unresolved forward references and type variables.
    """
    tp, _ = strip_annotated(tp)
    if tp is Any or tp is object or tp is None:
        return True
    if isinstance(tp, (str, typing.ForwardRef, TypeVar)):
        return True
    return False


def optional_inner(tp: Any) -> Any | None:
    """Return ``T`` for ``Optional[T]`` / ``T | None``, otherwise None."""
    tp, _ = strip_annotated(tp)
    if not is_union(tp):
        return None
    args = get_args(tp)
    if NoneType not in args:
        return None
    rest = [a for a in args if a is not NoneType]
    if len(rest) == 1:
        return rest[0]
    return Union[tuple(rest)]  # type: ignore[return-value]


def is_optional(tp: Any) -> bool:
    return optional_inner(tp) is not None


def indirect_type(tp: Any) -> Any:
    """Strip ``Annotated`` and ``Optional`` layers until a concrete type remains."""
    tp, _ = strip_annotated(tp)
    while True:
        inner = optional_inner(tp)
        if inner is None:
            return tp
        tp, _ = strip_annotated(inner)


def type_origin(tp: Any) -> Any:
    """``list`` for ``list[int]``, the type itself for plain classes."""
    tp, _ = strip_annotated(tp)
    if is_newtype(tp):
        return type_origin(tp.__supertype__)
    return get_origin(tp) or tp


def _is_class(tp: Any) -> bool:
    return isinstance(tp, type) and not isinstance(tp, types.GenericAlias)


def is_text_type(tp: Any) -> bool:
    origin = type_origin(tp)
    return _is_class(origin) and issubclass(origin, _TEXT_TYPES)


def is_sequence_type(tp: Any) -> bool:
    origin = type_origin(indirect_type(tp))
    if not _is_class(origin) or issubclass(origin, _TEXT_TYPES):
        return False
    return issubclass(origin, cabc.Sequence)


def is_mapping_type(tp: Any) -> bool:
    origin = type_origin(indirect_type(tp))
    return _is_class(origin) and issubclass(origin, cabc.Mapping)


def sequence_item_type(tp: Any) -> Any:
    """Element type of ``list[T]``, ``tuple[T, ...]`` and friends (``Any`` if unknown)."""
    tp = indirect_type(tp)
    args = get_args(tp)
    if not args:
        return Any
    if type_origin(tp) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        if all(a == args[0] for a in args):
            return args[0]
        return Any
    return args[0]


def mapping_item_types(tp: Any) -> tuple[Any, Any]:
    """Key and value types of ``dict[K, V]`` (``Any`` where unknown)."""
    args = get_args(indirect_type(tp))
    if len(args) == 2:
        return args[0], args[1]
    return Any, Any


def build_sequence(tp: Any, items: list[Any]) -> Any:
    """Construct a sequence of the annotated container type from `items`."""
    origin = type_origin(indirect_type(tp))
    if not _is_class(origin) or origin in (
        list,
        cabc.Sequence,
        cabc.MutableSequence,
    ):
        return items
    if origin is tuple:
        return tuple(items)
    try:
        return origin(items)
    except TypeError:
        return items


def new_mapping(tp: Any) -> Any:
    """Construct an empty mapping of the annotated container type."""
    origin = type_origin(indirect_type(tp))
    if not _is_class(origin) or origin in (
        dict,
        cabc.Mapping,
        cabc.MutableMapping,
    ):
        return {}
    try:
        return origin()
    except TypeError:
        return {}


def is_assignable(value: Any, tp: Any) -> bool:
    """Whether `value` can be stored as-is in a slot annotated with `tp`."""
    tp, _ = strip_annotated(tp)
    if is_dynamic(tp):
        return True
    if value is None:
        return tp is NoneType or (is_union(tp) and NoneType in get_args(tp))
    if is_union(tp):
        return any(is_assignable(value, arg) for arg in get_args(tp))
    if is_newtype(tp):
        return is_assignable(value, tp.__supertype__)

    origin = get_origin(tp)
    if origin is Literal:
        return value in get_args(tp)
    if origin is not None:
        if not _is_class(origin):
            return True
        if not isinstance(value, origin):
            return False
        args = get_args(tp)
        if not args:
            return True
        if isinstance(value, cabc.Mapping) and len(args) == 2:
            key_type, value_type = args
            return all(
                is_assignable(k, key_type) and is_assignable(v, value_type)
                for k, v in value.items()
            )
        if isinstance(value, tuple) and origin is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return all(is_assignable(item, args[0]) for item in value)
            return len(args) == len(value) and all(
                is_assignable(item, arg) for item, arg in zip(value, args)
            )
        if isinstance(value, (cabc.Sequence, cabc.Set)) and not isinstance(
            value, _TEXT_TYPES
        ):
            return all(is_assignable(item, args[0]) for item in value)
        return True
    if _is_class(tp):
        return isinstance(value, tp)
    return True


def _is_numeric(tp: type) -> bool:
    return issubclass(tp, _NUMERIC_TYPES) and not issubclass(tp, bool)


def convert(value: Any, tp: Any) -> tuple[bool, Any]:
    """
    Assign or convert `value` for a slot annotated with `tp`.

    Returns
    -------
    tuple[bool, Any]
        ``(True, converted)`` on success, ``(False, None)`` when the value is
        neither assignable nor convertible.
    """
    if is_assignable(value, tp):
        return True, value
    if value is None:
        return False, None

    tp = indirect_type(tp)
    if is_union(tp):
        for arg in get_args(tp):
            ok, converted = convert(value, arg)
            if ok:
                return True, converted
        return False, None
    if is_newtype(tp):
        return convert(value, tp.__supertype__)
    if not _is_class(tp):
        return False, None

    if issubclass(tp, Enum):
        if isinstance(value, Enum):
            value = value.value
        try:
            return True, tp(value)
        except ValueError:
            return False, None
    if isinstance(value, Enum):
        return convert(value.value, tp)

    if _is_numeric(type(value)) and _is_numeric(tp):
        try:
            return True, tp(value)
        except (TypeError, ValueError, ArithmeticError):
            return False, None

    if isinstance(value, str) and issubclass(tp, (bytes, bytearray)):
        return True, tp(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray)) and issubclass(tp, str):
        try:
            return True, tp(bytes(value).decode("utf-8"))
        except UnicodeDecodeError:
            return False, None

    # Builtin subclasses (e.g. `class UserId(str)`) convert from their base
    if issubclass(tp, bool):
        return False, None
    for base in (str, int, float, bytes):
        if issubclass(tp, base) and isinstance(value, base) and not isinstance(
            value, bool
        ):
            try:
                return True, tp(value)
            except (TypeError, ValueError):
                return False, None
    return False, None


def is_convertible_type(from_type: Any, to_type: Any) -> bool:
    """Type-level counterpart of `convert`, used for keys and sequence elements."""
    if is_dynamic(to_type):
        return True
    to_type = indirect_type(to_type)
    if is_dynamic(to_type):
        return True
    if is_union(to_type):
        return any(is_convertible_type(from_type, arg) for arg in get_args(to_type))
    if get_origin(to_type) is Literal:
        return any(isinstance(arg, from_type) for arg in get_args(to_type))

    origin = type_origin(to_type)
    if not _is_class(origin) or not _is_class(from_type):
        return True
    if issubclass(from_type, origin):
        return True
    if _is_numeric(from_type) and _is_numeric(origin):
        return True
    if issubclass(from_type, str) and issubclass(origin, (bytes, bytearray)):
        return True
    if issubclass(from_type, (bytes, bytearray)) and issubclass(origin, str):
        return True
    if issubclass(origin, Enum):
        if issubclass(from_type, Enum):
            return True
        return any(isinstance(member.value, from_type) for member in origin)
    if issubclass(from_type, Enum):
        return any(is_convertible_type(type(m.value), origin) for m in from_type)
    if issubclass(origin, bool):
        return False
    for base in (str, int, float, bytes):
        if issubclass(origin, base) and issubclass(from_type, base):
            return not issubclass(from_type, bool)
    return False
