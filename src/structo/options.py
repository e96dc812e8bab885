"""Copy policy."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from .converters import (
    DEFAULT_TEMPORAL_CONVERTERS,
    FieldNameMapping,
    TypeConverter,
    converter_registry,
    field_name_registry,
)


class CopyOption(BaseModel):
    """
    Options controlling one copy call.

    Parameters
    ----------
    ignore_empty : bool, default False
        Skip source values equal to the zero value of their type.
    case_sensitive : bool, default False
        Match destination field names exactly instead of case-folded.
    deep_copy : bool, default False
        Duplicate values instead of sharing them with the source.
    converters : tuple[TypeConverter, ...]
        Custom transforms, keyed by exact (source type, destination type).
    field_name_mapping : tuple[FieldNameMapping, ...]
        Per type-pair rename tables.
    check_must : bool, default False
        Enforce ``must`` tags once each record has been copied.

    Examples
    --------
        >>> option = CopyOption(ignore_empty=True, deep_copy=True)
        >>> option.deep_copy
        True
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ignore_empty: bool = False
    case_sensitive: bool = False
    deep_copy: bool = False
    converters: tuple[TypeConverter, ...] = ()
    field_name_mapping: tuple[FieldNameMapping, ...] = ()
    check_must: bool = False

    def converter_registry(self) -> dict[tuple[Any, Any], TypeConverter]:
        return converter_registry(self.converters)

    def field_name_registry(self) -> dict[tuple[Any, Any], dict[str, str]]:
        return field_name_registry(self.field_name_mapping)


def with_temporal_converters(option: CopyOption | None = None) -> CopyOption:
    """
    Return an option with the datetime/date <-> ISO-8601 converters installed.

    The caller's own converters come after the temporal ones, so they win for
    the same type pair. Every other setting of `option` is kept.
    """
    if option is None:
        return CopyOption(converters=DEFAULT_TEMPORAL_CONVERTERS)
    return option.model_copy(
        update={"converters": DEFAULT_TEMPORAL_CONVERTERS + tuple(option.converters)}
    )
