"""User supplied type converters and field rename tables."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from .errors import ConverterError


class TypeConverter(BaseModel):
    """
    Transform for values of an exact (source type, destination type) pair.

    When several converters declare the same pair, the last one wins. The
    function signals failure by raising; the exception is re-raised as
    `ConverterError` with the original as its cause.

    Examples
    --------
        >>> from decimal import Decimal
        >>> cents = TypeConverter(
        ...     src_type=Decimal, dst_type=int, fn=lambda v: int(v * 100)
        ... )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    src_type: Any
    dst_type: Any
    fn: Callable[[Any], Any]

    @property
    def pair(self) -> tuple[Any, Any]:
        return self.src_type, self.dst_type


class FieldNameMapping(BaseModel):
    """
    Renames applied when copying from `src_type` records into `dst_type` records.

    Keys are source field names, values destination field names.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    src_type: Any
    dst_type: Any
    mapping: dict[str, str]

    @property
    def pair(self) -> tuple[Any, Any]:
        return self.src_type, self.dst_type


def converter_registry(
    converters: Iterable[TypeConverter],
) -> dict[tuple[Any, Any], TypeConverter]:
    """Index converters by pair; later entries replace earlier ones."""
    return {converter.pair: converter for converter in converters}


def field_name_registry(
    mappings: Iterable[FieldNameMapping],
) -> dict[tuple[Any, Any], dict[str, str]]:
    return {mapping.pair: dict(mapping.mapping) for mapping in mappings}


def lookup_converter(
    registry: dict[tuple[Any, Any], TypeConverter], src_type: Any, dst_type: Any
) -> TypeConverter | None:
    try:
        return registry.get((src_type, dst_type))
    except TypeError:
        # Unhashable annotation (e.g. Annotated with a dict marker)
        return None


def apply_converter(converter: TypeConverter, value: Any) -> Any:
    """Run a converter, wrapping its failure in `ConverterError`."""
    logger.debug(
        f"Converting {type(value).__name__} value with converter "
        f"{converter.src_type!r} -> {converter.dst_type!r}"
    )
    try:
        return converter.fn(value)
    except Exception as exc:
        raise ConverterError(
            converter.src_type,
            converter.dst_type,
            f"converter {converter.src_type!r} -> {converter.dst_type!r} failed: {exc}",
        ) from exc


# ---------------------------------------------------------------------------
# Temporal converters
# ---------------------------------------------------------------------------

DATETIME_TO_ISO = TypeConverter(src_type=datetime, dst_type=str, fn=datetime.isoformat)
ISO_TO_DATETIME = TypeConverter(src_type=str, dst_type=datetime, fn=datetime.fromisoformat)
DATE_TO_ISO = TypeConverter(src_type=date, dst_type=str, fn=date.isoformat)
ISO_TO_DATE = TypeConverter(src_type=str, dst_type=date, fn=date.fromisoformat)

DEFAULT_TEMPORAL_CONVERTERS: tuple[TypeConverter, ...] = (
    DATETIME_TO_ISO,
    ISO_TO_DATETIME,
    DATE_TO_ISO,
    ISO_TO_DATE,
)
