"""Record introspection: field enumeration, tags, zero values."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import types
import typing
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any, Literal, get_args, get_origin

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import DynamicMapped, Mapped, Mapper, WriteOnlyMapped

from .cache import TypeCache
from .typeutils import (
    build_sequence,
    indirect_type,
    is_dynamic,
    is_mapping_type,
    is_newtype,
    is_optional,
    is_sequence_type,
    is_union,
    new_mapping,
    strip_annotated,
    type_origin,
)

# Metadata key holding the tag string, as in `copy_field(tag=...)`,
# `Field(json_schema_extra={"copier": ...})` or `mapped_column(info={...})`
TAG_KEY = "copier"
EMBEDDED_KEY = "embedded"

_MISSING = object()

_MAPPED_WRAPPERS = (Mapped, WriteOnlyMapped, DynamicMapped)


@dataclass(frozen=True)
class Tag:
    """
    Copy tag attached through ``typing.Annotated``.

    Examples
    --------
        >>> from typing import Annotated
        >>> from dataclasses import dataclass
        >>> @dataclass
        ... class Account:
        ...     secret: Annotated[str, Tag("-")] = ""
        ...     code: Annotated[str, Tag("must,nopanic")] = ""
    """

    spec: str


@dataclass(frozen=True)
class Embedded:
    """Marks a record-typed field whose fields are promoted into the owner."""


def copy_field(tag: str | None = None, *, embedded: bool = False, **kwargs: Any) -> Any:
    """
    Declare a dataclass field carrying a copy tag.

    Parameters
    ----------
    tag : str, optional
        Comma separated tag: ``-``, ``must``, ``nopanic`` or an explicit
        name starting with an upper-case letter.
    embedded : bool, default False
        Promote the fields of this record-typed field into the owner.
    **kwargs
        Passed through to `dataclasses.field`.

    Examples
    --------
        >>> from dataclasses import dataclass
        >>> @dataclass
        ... class Employee:
        ...     name: str = copy_field("must")
        ...     salary: int = copy_field("-", default=0)
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if tag is not None:
        metadata[TAG_KEY] = tag
    if embedded:
        metadata[EMBEDDED_KEY] = True
    return dataclasses.field(metadata=metadata, **kwargs)


class RecordKind(Enum):
    DATACLASS = "dataclass"
    PYDANTIC = "pydantic"
    SQLALCHEMY = "sqlalchemy"


def _detect_record_kind(tp: type) -> RecordKind | None:
    if dataclasses.is_dataclass(tp):
        return RecordKind.DATACLASS
    if issubclass(tp, BaseModel) and tp is not BaseModel:
        return RecordKind.PYDANTIC
    if isinstance(sa_inspect(tp, raiseerr=False), Mapper):
        return RecordKind.SQLALCHEMY
    return None


_record_kinds: TypeCache[RecordKind | None] = TypeCache(_detect_record_kind)


def record_kind(tp: Any) -> RecordKind | None:
    """Return the kind of record `tp` is, or None for non-record types."""
    if not isinstance(tp, type) or isinstance(tp, types.GenericAlias):
        return None
    return _record_kinds.get(tp)


def is_record_type(tp: Any) -> bool:
    return record_kind(tp) is not None


def is_frozen_record(tp: Any) -> bool:
    kind = record_kind(tp)
    if kind is RecordKind.DATACLASS:
        return bool(tp.__dataclass_params__.frozen)
    if kind is RecordKind.PYDANTIC:
        return bool(tp.model_config.get("frozen"))
    return False


@dataclass(frozen=True)
class RecordField:
    """
    One exported field of a record type.

    Promoted fields (coming from an embedded record) keep a reference to the
    embedding field in `parent`; `lineage` is the attribute path from the
    outermost record down to this field.
    """

    name: str
    annotation: Any
    tag: str | None = None
    embedded: bool = False
    parent: RecordField | None = None

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    @property
    def lineage(self) -> tuple[RecordField, ...]:
        if self.parent is None:
            return (self,)
        return self.parent.lineage + (self,)

    @property
    def path(self) -> str:
        return ".".join(link.name for link in self.lineage)


def _unwrap_mapped(tp: Any) -> Any:
    origin = get_origin(tp)
    if origin in _MAPPED_WRAPPERS:
        args = get_args(tp)
        return args[0] if args else Any
    return tp


def _normalize(raw: Any) -> tuple[Any, tuple[Any, ...]]:
    """Strip ``Annotated`` and ``Mapped`` layers, collecting marker metadata."""
    bare, markers = strip_annotated(raw)
    bare = _unwrap_mapped(bare)
    bare, inner = strip_annotated(bare)
    return bare, markers + inner


def _marker_tag(markers: tuple[Any, ...]) -> str | None:
    for marker in markers:
        if isinstance(marker, Tag):
            return marker.spec
    return None


def _has_embedded(markers: tuple[Any, ...]) -> bool:
    return any(isinstance(m, Embedded) or m is Embedded for m in markers)


def type_hints(tp: type) -> dict[str, Any]:
    """
    Resolved annotations of `tp`, falling back to the raw ones.

    Records declared inside functions may reference names that cannot be
    resolved at module level; their unresolved annotations are kept as
    strings and treated as dynamic.
    """
    try:
        return typing.get_type_hints(tp, include_extras=True)
    except (NameError, TypeError, AttributeError):
        hints: dict[str, Any] = {}
        for klass in reversed(tp.__mro__):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


def _own_fields(tp: type) -> list[RecordField]:
    kind = record_kind(tp)
    hints = type_hints(tp)
    fields: list[RecordField] = []

    if kind is RecordKind.DATACLASS:
        for f in dataclasses.fields(tp):
            annotation, markers = _normalize(hints.get(f.name, f.type))
            fields.append(
                RecordField(
                    name=f.name,
                    annotation=annotation,
                    tag=_marker_tag(markers) or f.metadata.get(TAG_KEY),
                    embedded=_has_embedded(markers)
                    or bool(f.metadata.get(EMBEDDED_KEY)),
                )
            )
    elif kind is RecordKind.PYDANTIC:
        for name, info in tp.model_fields.items():
            annotation, markers = _normalize(info.annotation)
            _, hinted = _normalize(hints.get(name, Any))
            markers = tuple(info.metadata) + markers + hinted
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            fields.append(
                RecordField(
                    name=name,
                    annotation=annotation,
                    tag=_marker_tag(markers) or extra.get(TAG_KEY),  # type: ignore[arg-type]
                    embedded=_has_embedded(markers) or bool(extra.get(EMBEDDED_KEY)),
                )
            )
    elif kind is RecordKind.SQLALCHEMY:
        mapper = sa_inspect(tp)
        for prop in mapper.attrs:
            annotation, markers = _normalize(hints.get(prop.key, Any))
            info = dict(prop.info)
            for column in getattr(prop, "columns", ()):
                info = {**getattr(column, "info", {}), **info}
            fields.append(
                RecordField(
                    name=prop.key,
                    annotation=annotation,
                    tag=_marker_tag(markers) or info.get(TAG_KEY),
                    embedded=_has_embedded(markers) or bool(info.get(EMBEDDED_KEY)),
                )
            )

    # Only exported (public) fields take part in copying
    return [f for f in fields if not f.name.startswith("_")]


def _collect(tp: type, parent: RecordField | None, seen: frozenset[type]) -> list[RecordField]:
    collected: list[RecordField] = []
    for own in _own_fields(tp):
        field = dataclasses.replace(own, parent=parent)
        collected.append(field)
        if not field.embedded:
            continue
        inner = type_origin(indirect_type(field.annotation))
        # A record embedding itself would never terminate
        if is_record_type(inner) and inner not in seen:
            collected.extend(_collect(inner, field, seen | {inner}))
    return collected


def _build_deep_fields(tp: type) -> tuple[RecordField, ...]:
    if not is_record_type(tp):
        return ()
    return tuple(_collect(tp, None, frozenset({tp})))


_deep_fields: TypeCache[tuple[RecordField, ...]] = TypeCache(_build_deep_fields)


def deep_fields(tp: Any) -> tuple[RecordField, ...]:
    """
    Return the flattened, ordered list of exported fields of a record type.

    Fields of embedded records follow their embedding field, which is kept
    in the list as well. Results are cached for the life of the process.

    Parameters
    ----------
    tp : type
        A dataclass, pydantic model or SQLAlchemy mapped class. ``Optional``
        wrappers are ignored.

    Returns
    -------
    tuple[RecordField, ...]
        Empty for non-record types.
    """
    tp = type_origin(indirect_type(tp))
    if not isinstance(tp, type):
        return ()
    return _deep_fields.get(tp)


def find_field(
    fields: cabc.Iterable[RecordField], name: str, case_sensitive: bool = True
) -> RecordField | None:
    """
    Find a field by name; shallower fields win over promoted ones.

    An exact match is preferred to a case-folded one when `case_sensitive`
    is False.
    """
    fields = tuple(fields)
    candidates = [f for f in fields if f.name == name]
    if not candidates and not case_sensitive:
        folded = name.casefold()
        candidates = [f for f in fields if f.name.casefold() == folded]
    if not candidates:
        return None
    return min(candidates, key=lambda f: f.depth)


def field_value(obj: Any, field: RecordField) -> tuple[bool, Any]:
    """
    Read `field` from `obj`, following the embedding path.

    Returns ``(False, None)`` when an embedding ancestor is None or the
    attribute is missing.
    """
    current = obj
    for link in field.lineage:
        if current is None:
            return False, None
        current = getattr(current, link.name, _MISSING)
        if current is _MISSING:
            return False, None
    return True, current


def ensure_ancestors(obj: Any, field: RecordField) -> Any | None:
    """
    Allocate None embedding ancestors of `field` on `obj`.

    Returns
    -------
    Any | None
        The object that directly owns `field`, or None when an ancestor could
        not be allocated.
    """
    owner = obj
    for link in field.lineage[:-1]:
        current = getattr(owner, link.name, None)
        if current is None:
            current = zero_value(indirect_type(link.annotation))
            if current is None:
                return None
            force_setattr(owner, link.name, current)
        owner = current
    return owner


class Shape(Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    RECORD = "record"
    DYNAMIC = "dynamic"


def type_shape(tp: Any) -> Shape:
    tp = indirect_type(tp)
    if is_dynamic(tp):
        return Shape.DYNAMIC
    if is_mapping_type(tp):
        return Shape.MAPPING
    if is_sequence_type(tp):
        return Shape.SEQUENCE
    if is_record_type(type_origin(tp)):
        return Shape.RECORD
    return Shape.SCALAR


def value_shape(value: Any) -> Shape:
    return type_shape(type(value))


def new_record(tp: type) -> Any:
    """Construct an instance of a record type with zero-valued required fields."""
    kind = record_kind(tp)
    hints = type_hints(tp)

    if kind is RecordKind.PYDANTIC:
        required = {
            name: zero_value(info.annotation)
            for name, info in tp.model_fields.items()
            if info.is_required()
        }
        return tp.model_construct(**required)

    if kind is RecordKind.DATACLASS:
        kwargs = {
            f.name: zero_value(hints.get(f.name, f.type))
            for f in dataclasses.fields(tp)
            if f.init
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        }
        try:
            return tp(**kwargs)
        except (TypeError, ValueError):
            # __post_init__ rejected the zero values; build the instance field by field
            instance = object.__new__(tp)
            for f in dataclasses.fields(tp):
                if f.name in kwargs:
                    value = kwargs[f.name]
                elif f.default_factory is not dataclasses.MISSING:
                    value = f.default_factory()
                elif f.default is not dataclasses.MISSING:
                    value = f.default
                else:
                    value = zero_value(hints.get(f.name, f.type))
                object.__setattr__(instance, f.name, value)
            return instance

    return tp()


def zero_value(tp: Any) -> Any:
    """
    Return the zero value of an annotation.

    None for dynamic and optional types, ``T()`` for scalars and containers,
    a fresh instance for records, the first member for enums, and None when
    nothing sensible can be constructed.
    """
    tp, _ = _normalize(tp)
    if is_dynamic(tp) or is_optional(tp):
        return None
    if is_union(tp):
        return zero_value(get_args(tp)[0])
    if is_newtype(tp):
        return zero_value(tp.__supertype__)
    if get_origin(tp) is Literal:
        return get_args(tp)[0]
    if is_mapping_type(tp):
        return new_mapping(tp)
    if is_sequence_type(tp):
        return build_sequence(tp, [])

    origin = type_origin(tp)
    if not isinstance(origin, type):
        return None
    if is_record_type(origin):
        return new_record(origin)
    if issubclass(origin, Enum):
        return next(iter(origin), None)  # type: ignore[call-overload]
    try:
        return origin()
    except (TypeError, ValueError):
        return None


_SCALARS = (bool, int, float, complex, Decimal, Fraction, str, bytes, bytearray)


def is_zero(value: Any) -> bool:
    """Whether `value` equals the zero value of its own type."""
    if value is None:
        return True
    if isinstance(value, Enum):
        return False
    if isinstance(value, _SCALARS):
        return not value
    tp = type(value)
    if is_record_type(tp):
        return all(
            is_zero(getattr(value, f.name, None))
            for f in deep_fields(tp)
            if f.parent is None
        )
    if isinstance(value, cabc.Collection):
        return len(value) == 0
    try:
        return bool(value == zero_value(tp))
    except (TypeError, ValueError):
        return False


def _is_internal(name: str) -> bool:
    return name.startswith("_") and not name.startswith("__") and not name.startswith("_sa_")


def internal_values(obj: Any) -> dict[str, Any]:
    """Internal (underscore-prefixed) state of a record instance."""
    values: dict[str, Any] = {}
    tp = type(obj)
    if record_kind(tp) is RecordKind.DATACLASS:
        for f in dataclasses.fields(tp):
            if _is_internal(f.name) and hasattr(obj, f.name):
                values[f.name] = getattr(obj, f.name)
    state = getattr(obj, "__dict__", None)
    if isinstance(state, dict):
        for name, value in state.items():
            if _is_internal(name):
                values.setdefault(name, value)
    private = getattr(obj, "__pydantic_private__", None)
    if isinstance(private, dict):
        values.update(private)
    return values


def force_setattr(obj: Any, name: str, value: Any) -> None:
    """Set an attribute, bypassing the frozen guard of frozen records."""
    tp = type(obj)
    if is_frozen_record(tp) and not (
        record_kind(tp) is RecordKind.PYDANTIC and name.startswith("_")
    ):
        object.__setattr__(obj, name, value)
    else:
        setattr(obj, name, value)


def overwrite_record(target: Any, value: Any) -> None:
    """Replace the state of `target` in place with the state of `value`."""
    if target is value:
        return
    for field in deep_fields(type(target)):
        if field.parent is not None:
            continue
        new = getattr(value, field.name, _MISSING)
        if new is not _MISSING:
            force_setattr(target, field.name, new)
    for name, internal in internal_values(value).items():
        force_setattr(target, name, internal)
