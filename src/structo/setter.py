"""Assignment of a single value into a single slot."""

from __future__ import annotations

import copy as cp
from typing import Any

from loguru import logger

from .converters import TypeConverter, apply_converter, lookup_converter
from .fields import Shape, type_shape, zero_value
from .nullable import is_scanner_type, is_valuer
from .slots import Slot
from .typeutils import convert, is_dynamic, optional_inner, strip_annotated, type_origin

_STRUCTURED = (Shape.RECORD, Shape.SEQUENCE, Shape.MAPPING)


def _apply_registered(
    slot: Slot, value: Any, converters: dict[tuple[Any, Any], TypeConverter]
) -> bool:
    declared, _ = strip_annotated(slot.type)
    candidates = [declared]
    inner = optional_inner(declared)
    if inner is not None:
        candidates.append(inner)

    for target in candidates:
        converter = lookup_converter(converters, type(value), target)
        if converter is None:
            continue
        result = apply_converter(converter, value)
        slot.set(zero_value(slot.type) if result is None else result)
        return True
    return False


def set_value(
    slot: Slot,
    value: Any,
    deep_copy: bool = False,
    converters: dict[tuple[Any, Any], TypeConverter] | None = None,
) -> bool:
    """
    Store `value` into `slot` if it can be done without a nested copy.

    Tried in order: a registered converter for the exact value/declared type
    pair; ``Optional`` handling; the deep-copy guard; plain assignment or a
    builtin conversion; ``__scan__`` on the destination; ``__value__`` on the
    source.

    Parameters
    ----------
    slot : Slot
        Destination location and its declared type.
    value : Any
        Source value.
    deep_copy : bool, default False
        Duplicate the value instead of sharing it. Structured destinations are
        then left to the nested copy.
    converters : dict, optional
        Registry built by `CopyOption.converter_registry`.

    Returns
    -------
    bool
        False when the caller should fall back to a nested copy.

    Raises
    ------
    ConverterError
        If a matching converter raised.
    """
    converters = converters or {}
    if _apply_registered(slot, value, converters):
        return True

    declared, _ = strip_annotated(slot.type)
    inner = optional_inner(declared)
    if inner is not None:
        if value is None:
            slot.set(None)
            return True
        if slot.value is None and is_valuer(value):
            try:
                if value.__value__() is None:
                    return True
            except Exception as exc:
                logger.debug(f"__value__ of {type(value).__name__} failed: {exc}")
                return True
        slot = slot.retype(inner)
        declared, _ = strip_annotated(inner)

    if deep_copy:
        if is_dynamic(declared):
            slot.set(cp.deepcopy(value))
            return True
        if value is None:
            return True
        if type_shape(declared) in _STRUCTURED and not is_scanner_type(type_origin(declared)):
            return False

    ok, converted = convert(value, declared)
    if ok:
        slot.set(cp.deepcopy(converted) if deep_copy else converted)
        return True

    origin = type_origin(declared)
    if is_scanner_type(origin):
        if value is None:
            return True
        target = slot.value
        if target is None:
            target = zero_value(declared)
        if target is None:
            return False
        try:
            target.__scan__(value)
        except Exception as exc:
            logger.debug(f"__scan__ of {origin.__name__} rejected {value!r}: {exc}")
            return False
        slot.set(target)
        return True

    if is_valuer(value):
        try:
            plain = value.__value__()
        except Exception as exc:
            logger.debug(f"__value__ of {type(value).__name__} failed: {exc}")
            return False
        if plain is None:
            return True
        ok, converted = convert(plain, declared)
        if ok:
            slot.set(converted)
        return True

    # A None source leaves a non-optional destination untouched
    return value is None
