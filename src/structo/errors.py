"""Exceptions raised by the copy engine."""


class CopyError(Exception):
    """Base class for every recoverable copy failure."""

    default_message = "copy failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InvalidCopyDestinationError(CopyError, TypeError):
    """The destination is not a settable location."""

    default_message = "copy destination must be non-nil and addressable"


class InvalidCopyFromError(CopyError, TypeError):
    """The source does not denote a value."""

    default_message = "copy from must be non-nil and addressable"


class MapKeyNotMatchError(CopyError, TypeError):
    """Source mapping keys cannot be converted to the destination key type."""

    default_message = "map's key type doesn't match"


class NotSupportedError(CopyError):
    """A value has no applicable copy strategy."""

    default_message = "not supported"


class FieldNameTagStartNotUpperCaseError(CopyError, ValueError):
    """An explicit name in a field tag does not start with an upper-case letter."""

    default_message = "copier field name tag must be start upper case"


class ConverterError(CopyError):
    """A user supplied `TypeConverter` raised while converting a value."""

    def __init__(self, src_type, dst_type, message: str | None = None):
        self.src_type = src_type
        self.dst_type = dst_type
        super().__init__(
            message or f"converter {src_type!r} -> {dst_type!r} failed"
        )


class MustCopyError(CopyError):
    """A field tagged ``must,nopanic`` was not copied."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"field {field} has must tag but was not copied")


class MustCopyFault(BaseException):
    """
    A field tagged ``must`` (without ``nopanic``) was not copied.

    Derives from `BaseException` so that ``except Exception`` blocks and the
    engine's lenient nested fallback let it through.
    """

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field {field} has must tag but was not copied")
