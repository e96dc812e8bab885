"""Scan/value extension point and the `Nullable` wrapper."""

from __future__ import annotations

from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Scanner(Protocol):
    """Destination that loads itself from an arbitrary value (in place)."""

    def __scan__(self, value: Any) -> None: ...


@runtime_checkable
class Valuer(Protocol):
    """Source that exposes a plain value, or None when it holds nothing."""

    def __value__(self) -> Any: ...


def is_scanner_type(tp: Any) -> bool:
    return isinstance(tp, type) and callable(getattr(tp, "__scan__", None))


def is_valuer(value: Any) -> bool:
    return not isinstance(value, type) and isinstance(value, Valuer)


class Nullable(Generic[T]):
    """
    A value that may be absent.

    Copying a plain value into a ``Nullable`` field scans it in; copying a
    ``Nullable`` into a plain field copies the wrapped value, and leaves the
    field untouched when the wrapper is empty.

    Parameters
    ----------
    value : T, optional
        The wrapped value.
    valid : bool, optional
        Whether `value` is present. Defaults to ``value is not None``.

    Examples
    --------
        >>> name = Nullable("Ada")
        >>> name.__value__()
        'Ada'
        >>> Nullable().__value__() is None
        True
    """

    def __init__(self, value: T | None = None, valid: bool | None = None):
        self.value = value
        self.valid = value is not None if valid is None else valid

    def __scan__(self, value: Any) -> None:
        if isinstance(value, Nullable):
            value = value.__value__()
        self.value = value
        self.valid = value is not None

    def __value__(self) -> T | None:
        return self.value if self.valid else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Nullable):
            return NotImplemented
        return (self.value, self.valid) == (other.value, other.valid)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if not self.valid:
            return "Nullable()"
        return f"Nullable({self.value!r})"
