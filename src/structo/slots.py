"""Settable locations the engine copies into."""

from __future__ import annotations

import collections.abc as cabc
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .errors import InvalidCopyDestinationError
from .fields import force_setattr, is_frozen_record, is_record_type, overwrite_record

T = TypeVar("T")


class Ref(Generic[T]):
    """
    A settable box for values that cannot be updated in place.

    Scalars, tuples, frozen records and "nothing yet" are copied into through
    a ``Ref``. The declared type drives the copy; the default, ``Any``, makes
    the box a dynamic slot that takes whatever the source is.

    Parameters
    ----------
    value : T, optional
        Initial content.
    type_ : type, default Any
        Declared type of the box.

    Examples
    --------
        >>> from structo import copy
        >>> counter = Ref(type_=int)
        >>> copy(counter, 42.0)
        >>> counter.value
        42
    """

    def __init__(self, value: T | None = None, type_: Any = Any):
        self.value = value
        self.type = type_

    def __repr__(self) -> str:
        return f"Ref({self.value!r}, type_={self.type!r})"


def deref(value: Any) -> Any:
    while isinstance(value, Ref):
        value = value.value
    return value


class Slot:
    """A declared type plus accessors reading and writing one location."""

    __slots__ = ("type", "_get", "_set")

    def __init__(self, type_: Any, get: Callable[[], Any], set_: Callable[[Any], None]):
        self.type = type_
        self._get = get
        self._set = set_

    @property
    def value(self) -> Any:
        return self._get()

    def set(self, value: Any) -> None:
        self._set(value)

    def retype(self, type_: Any) -> Slot:
        """Same location, viewed through another declared type."""
        return Slot(type_, self._get, self._set)

    def __repr__(self) -> str:
        return f"Slot(type={self.type!r}, value={self.value!r})"


def attr_slot(owner: Any, name: str, type_: Any, force: bool = False) -> Slot:
    """
    Slot over ``owner.name``.

    With `force`, writes bypass the frozen guard; only used on records the
    engine created itself.
    """

    def set_(value: Any) -> None:
        if force:
            force_setattr(owner, name, value)
        else:
            setattr(owner, name, value)

    return Slot(type_, lambda: getattr(owner, name, None), set_)


def item_slot(items: list[Any], index: int, type_: Any) -> Slot:
    def set_(value: Any) -> None:
        items[index] = value

    return Slot(type_, lambda: items[index], set_)


def box_slot(type_: Any, value: Any = None) -> Slot:
    """Free-standing slot, used for mapping keys/values and scratch values."""
    holder = [value]

    def set_(new: Any) -> None:
        holder[0] = new

    return Slot(type_, lambda: holder[0], set_)


def ref_slot(ref: Ref[Any]) -> Slot:
    def set_(value: Any) -> None:
        ref.value = value

    return Slot(ref.type, lambda: ref.value, set_)


def _first_type(values: cabc.Iterable[Any]) -> Any:
    for value in values:
        if value is not None:
            return type(value)
    return Any


def root_slot(destination: Any) -> Slot:
    """
    Slot for the top-level destination of a copy.

    Raises
    ------
    InvalidCopyDestinationError
        If `destination` cannot be updated in place (None, scalars, tuples,
        frozen records).
    """
    if isinstance(destination, Ref):
        return ref_slot(destination)

    tp = type(destination)
    if is_record_type(tp):
        if is_frozen_record(tp):
            raise InvalidCopyDestinationError(
                f"copy destination must be non-nil and addressable, "
                f"{tp.__name__} is frozen; wrap it in a Ref"
            )
        return Slot(tp, lambda: destination, lambda value: overwrite_record(destination, value))

    if isinstance(destination, cabc.MutableSequence):

        def set_items(value: Any) -> None:
            if value is not destination:
                destination[:] = list(value)

        item_type = _first_type(destination)
        return Slot(list[item_type], lambda: destination, set_items)  # type: ignore[valid-type]

    if isinstance(destination, cabc.MutableMapping):

        def set_entries(value: Any) -> None:
            if value is not destination:
                destination.clear()
                destination.update(value)

        key_type = _first_type(destination.keys())
        value_type = _first_type(destination.values())
        return Slot(dict[key_type, value_type], lambda: destination, set_entries)  # type: ignore[valid-type]

    raise InvalidCopyDestinationError()
