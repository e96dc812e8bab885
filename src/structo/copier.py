"""The copy engine: `copy` and `copy_with_option`."""

from __future__ import annotations

import collections.abc as cabc
import copy as cp
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger

from .config import default_option
from .converters import apply_converter, lookup_converter
from .errors import (
    CopyError,
    InvalidCopyFromError,
    MapKeyNotMatchError,
    NotSupportedError,
)
from .fields import (
    RecordField,
    Shape,
    deep_fields,
    ensure_ancestors,
    field_value,
    find_field,
    force_setattr,
    internal_values,
    is_frozen_record,
    is_record_type,
    is_zero,
    new_record,
    type_shape,
    value_shape,
    zero_value,
)
from .methods import method_table
from .naming import field_names_mapping, resolve_field_names
from .options import CopyOption
from .setter import set_value
from .slots import Slot, attr_slot, box_slot, deref, item_slot, root_slot
from .tags import TagFlag, check_must_flags, get_flags
from .typeutils import (
    build_sequence,
    convert,
    indirect_type,
    is_convertible_type,
    is_dynamic,
    mapping_item_types,
    new_mapping,
    sequence_item_type,
    type_origin,
)


def copy(destination: Any, source: Any) -> None:
    """
    Copy `source` into `destination` with the default options.

    See `copy_with_option`.
    """
    copy_with_option(destination, source, default_option())


def copy_with_option(destination: Any, source: Any, option: CopyOption | None = None) -> None:
    """
    Copy `source` into `destination`, field by field.

    Records (dataclasses, pydantic models, SQLAlchemy mapped classes) are
    matched by field name, honouring tags, rename tables and converters.
    Sequences and mappings are copied element by element, scalars are
    assigned or converted.

    Parameters
    ----------
    destination : Any
        A `Ref`, a mutable record instance, a mutable sequence or a mutable
        mapping. Updated in place.
    source : Any
        The value to copy from. A `Ref` is unwrapped.
    option : CopyOption, optional
        Copy policy. Defaults to `default_option()`.

    Raises
    ------
    InvalidCopyDestinationError
        If `destination` cannot be updated in place.
    InvalidCopyFromError
        If `source` is None.
    MapKeyNotMatchError
        If mapping keys cannot be converted to the destination key type.
    ConverterError
        If a registered converter raised.
    MustCopyError, MustCopyFault
        If ``check_must`` is set and a ``must`` field was not copied.

    Examples
    --------
        >>> from dataclasses import dataclass
        >>> @dataclass
        ... class User:
        ...     name: str = ""
        ...     age: int = 0
        >>> @dataclass
        ... class Employee:
        ...     name: str = ""
        ...     age: float = 0.0
        >>> employee = Employee()
        >>> copy_with_option(employee, User("Ada", 36), CopyOption())
        >>> employee
        Employee(name='Ada', age=36.0)
    """
    if option is None:
        option = default_option()
    slot = root_slot(destination)
    _Copier(option).copy_into(slot, source)


@contextmanager
def _scratch(slot: Slot, current: Any) -> Iterator[Slot]:
    """Concrete stand-in for a dynamic slot, written back on every exit path."""
    if is_record_type(type(current)) and not is_frozen_record(type(current)):
        value = current
    else:
        value = cp.copy(current)
    scratch = box_slot(type(current), value)
    try:
        yield scratch
    finally:
        slot.set(scratch.value)


class _Copier:
    """State of one copy call: the option and its pre-built registries."""

    def __init__(self, option: CopyOption):
        self.option = option
        self.converters = option.converter_registry()
        self.mappings = option.field_name_registry()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def copy_into(self, slot: Slot, source: Any) -> None:
        source = deref(source)
        if source is None:
            raise InvalidCopyFromError()

        declared = indirect_type(slot.type)
        if is_dynamic(declared):
            current = slot.value
            if current is None:
                slot.set(cp.deepcopy(source) if self.option.deep_copy else source)
                return
            with _scratch(slot, current) as scratch:
                self.copy_into(scratch, source)
            return

        src_shape = value_shape(source)
        dst_shape = type_shape(declared)

        if src_shape in (Shape.SCALAR, Shape.DYNAMIC):
            ok, converted = convert(source, slot.type)
            if ok:
                slot.set(cp.deepcopy(converted) if self.option.deep_copy else converted)
            return

        if src_shape is Shape.MAPPING and dst_shape is Shape.MAPPING:
            self._copy_mapping(slot, source, declared)
            return

        if (
            src_shape is Shape.SEQUENCE
            and dst_shape is Shape.SEQUENCE
            and self._elements_convertible(source, declared)
        ):
            self._copy_sequence(slot, source, declared)
            return

        self._copy_records(slot, source, declared, src_shape, dst_shape)

    def _nested(self, slot: Slot, value: Any, where: str) -> bool:
        """Nested copy used as a fallback; its failures are logged and dropped."""
        try:
            self.copy_into(slot, value)
        except CopyError as exc:
            logger.debug(f"Nested copy into {where} skipped: {exc}")
            return False
        return True

    def _ignorable(self, value: Any) -> bool:
        return self.option.ignore_empty and is_zero(value)

    # ------------------------------------------------------------------
    # Mappings and sequences
    # ------------------------------------------------------------------

    def _copy_mapping(self, slot: Slot, source: cabc.Mapping, declared: Any) -> None:
        key_type, value_type = mapping_item_types(declared)
        for key in source:
            if not is_convertible_type(type(key), key_type):
                raise MapKeyNotMatchError(
                    f"map's key type doesn't match: {type(key).__name__} -> {key_type!r}"
                )

        target = slot.value
        if target is None:
            target = new_mapping(declared)

        entries = []
        for key, value in source.items():
            key_box = box_slot(key_type, zero_value(key_type))
            if not set_value(key_box, key, self.option.deep_copy, self.converters):
                raise NotSupportedError(f"map, old key: {key!r}, new key: {key_type!r}")

            value_box = box_slot(value_type, zero_value(value_type))
            if not set_value(value_box, value, self.option.deep_copy, self.converters):
                self.copy_into(value_box, value)
            entries.append((key_box.value, value_box.value))

        if not isinstance(target, cabc.MutableMapping):
            target = dict(target)
        for key, value in entries:
            target[key] = value
        slot.set(target)

    def _elements_convertible(self, source: cabc.Sequence, declared: Any) -> bool:
        item_type = sequence_item_type(declared)
        return all(
            is_convertible_type(type(item), item_type) for item in source if item is not None
        )

    def _commit_sequence(self, slot: Slot, current: Any, items: list[Any], declared: Any) -> None:
        if isinstance(current, cabc.MutableSequence):
            current[:] = items
            slot.set(current)
        else:
            slot.set(build_sequence(declared, items))

    def _copy_sequence(self, slot: Slot, source: cabc.Sequence, declared: Any) -> None:
        item_type = sequence_item_type(declared)
        current = slot.value
        if current is None:
            items = [zero_value(item_type) for _ in source]
        else:
            items = list(current)

        # The destination grows as needed and is never truncated
        for index, item in enumerate(source):
            if index >= len(items):
                items.append(zero_value(item_type))
            element = item_slot(items, index, item_type)
            if not set_value(element, item, self.option.deep_copy, self.converters):
                self._nested(element, item, f"element {index}")

        self._commit_sequence(slot, current, items, declared)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _record_converter(self, src_type: type, *targets: Any) -> Any:
        for target in targets:
            converter = lookup_converter(self.converters, src_type, target)
            if converter is not None:
                return converter
        return None

    def _copy_records(
        self, slot: Slot, source: Any, declared: Any, src_shape: Shape, dst_shape: Shape
    ) -> None:
        if src_shape is Shape.RECORD:
            sources = [source]
        elif src_shape is Shape.SEQUENCE:
            sources = list(source)
            if not all(item is None or is_record_type(type(item)) for item in sources):
                return
        else:
            return

        if dst_shape is Shape.RECORD:
            dest_type = type_origin(declared)
        elif dst_shape is Shape.SEQUENCE:
            item_type = sequence_item_type(declared)
            dest_type = type_origin(indirect_type(item_type))
            if not is_record_type(dest_type):
                return
        else:
            # Unsupported combination
            return

        if dst_shape is Shape.SEQUENCE:
            if src_shape is Shape.RECORD:
                converter = lookup_converter(self.converters, type(source), declared)
                if converter is not None:
                    result = apply_converter(converter, source)
                    slot.set(zero_value(slot.type) if result is None else result)
                    return

            current = slot.value
            items = list(current) if current is not None else []
            for index, item in enumerate(sources):
                converter = None
                if item is not None:
                    converter = self._record_converter(type(item), item_type, dest_type)
                if converter is not None:
                    result = apply_converter(converter, item)
                    element = zero_value(item_type) if result is None else result
                else:
                    element = new_record(dest_type)
                    if item is not None:
                        self._copy_fields(element, item)
                if index < len(items):
                    items[index] = element
                else:
                    items.append(element)
            self._commit_sequence(slot, current, items, declared)
            return

        current = slot.value
        record = current
        converted = False
        for item in sources:
            if item is None:
                continue
            # A pair converter replaces the field copy of this element
            converter = self._record_converter(type(item), declared, dest_type)
            if converter is not None:
                result = apply_converter(converter, item)
                record = zero_value(slot.type) if result is None else result
                converted = True
                continue
            if record is None:
                record = new_record(dest_type)
            elif record is current and is_frozen_record(type(record)):
                record = cp.copy(record)
            self._copy_fields(record, item)
        if record is None and not converted:
            record = new_record(dest_type)
        if record is not current:
            slot.set(record)

    def _field_slot(self, dest: Any, field: RecordField) -> Slot | None:
        owner = ensure_ancestors(dest, field)
        if owner is None:
            return None
        frozen = is_frozen_record(type(owner))
        if frozen and owner is not dest:
            return None
        return attr_slot(owner, field.name, field.annotation, force=frozen)

    def _set_field(self, dest: Any, field: RecordField, value: Any) -> bool:
        slot = self._field_slot(dest, field)
        if slot is None:
            return False
        if set_value(slot, value, self.option.deep_copy, self.converters):
            return True
        return self._nested(slot, value, f"field '{field.path}'")

    def _merge_internal_state(self, dest: Any, source: Any) -> None:
        kept = internal_values(dest)
        for name, value in internal_values(source).items():
            if name in kept and not is_zero(kept[name]):
                continue
            force_setattr(dest, name, cp.deepcopy(value) if self.option.deep_copy else value)

    def _copy_fields(self, dest: Any, source: Any) -> None:
        dest_type, src_type = type(dest), type(source)
        flags = get_flags(dest_type, src_type)
        mapping = field_names_mapping(self.mappings, src_type, dest_type)
        case_sensitive = self.option.case_sensitive

        if isinstance(source, dest_type):
            self._merge_internal_state(dest, source)

        dest_fields = deep_fields(dest_type)
        src_fields = deep_fields(src_type)

        # Destination field name -> source field providing its value
        plan: dict[str, RecordField] = {}
        unmatched: list[tuple[str, RecordField]] = []
        for candidate in src_fields:
            src_name, dest_name = resolve_field_names(
                candidate.name, flags, mapping, case_sensitive
            )
            src_field = find_field(src_fields, src_name)
            if src_field is None:
                continue
            dest_field = find_field(dest_fields, dest_name, case_sensitive)
            if dest_field is None:
                unmatched.append((dest_name, src_field))
            else:
                plan[dest_field.name] = src_field

        for dest_field in dest_fields:
            if flags.flag(dest_field.name) & TagFlag.IGNORE:
                continue
            src_field = plan.get(dest_field.name)
            if src_field is None:
                continue
            found, value = field_value(source, src_field)
            if not found or self._ignorable(value):
                continue
            if self._set_field(dest, dest_field, value):
                flags.mark_copied(dest_field.name)

        dest_methods = method_table(dest_type)
        for dest_name, src_field in unmatched:
            setter = dest_methods.setters.get(dest_name)
            if setter is None:
                continue
            found, value = field_value(source, src_field)
            if not found or self._ignorable(value) or not setter.accepts(value):
                continue
            logger.debug(f"Copying '{src_field.path}' through {dest_type.__name__}.{dest_name}()")
            setter.call(dest, value)

        src_methods = method_table(src_type)
        for dest_field in dest_fields:
            if flags.flag(dest_field.name) & TagFlag.IGNORE:
                continue
            src_name, dest_name = resolve_field_names(
                dest_field.name, flags, mapping, case_sensitive
            )
            getter = src_methods.getters.get(src_name)
            if getter is None:
                continue
            target = find_field(dest_fields, dest_name, case_sensitive)
            if target is None or flags.flag(target.name) & TagFlag.IGNORE:
                continue
            try:
                value = getter.read(source)
            except Exception as exc:
                logger.debug(f"Getter {src_type.__name__}.{src_name} failed: {exc}")
                continue
            if self._ignorable(value):
                continue
            try:
                copied = self._set_field(dest, target, value)
            except CopyError as exc:
                logger.debug(f"Copying {src_type.__name__}.{src_name} skipped: {exc}")
                continue
            if copied:
                flags.mark_copied(target.name)

        if self.option.check_must:
            check_must_flags(flags.bits)
