"""
Structo: Field-by-Field Copying Between Records

Copy dataclasses, pydantic models and SQLAlchemy models into one another,
matching fields by name, tags and rename tables.
"""

from loguru import logger

from .config import (
    StructoSettings,
    default_option,
    disable_logging,
    enable_logging,
    get_settings,
)
from .converters import (
    DEFAULT_TEMPORAL_CONVERTERS,
    FieldNameMapping,
    TypeConverter,
)
from .copier import copy, copy_with_option
from .errors import (
    ConverterError,
    CopyError,
    FieldNameTagStartNotUpperCaseError,
    InvalidCopyDestinationError,
    InvalidCopyFromError,
    MapKeyNotMatchError,
    MustCopyError,
    MustCopyFault,
    NotSupportedError,
)
from .fields import Embedded, Tag, copy_field, deep_fields
from .nullable import Nullable, Scanner, Valuer
from .options import CopyOption, with_temporal_converters
from .slots import Ref

__version__ = "0.1.0"

logger.disable("structo")
if get_settings().log_enabled:
    enable_logging()

__all__ = [
    # Core
    "copy",
    "copy_with_option",
    "CopyOption",
    "Ref",
    # Declaring fields
    "Tag",
    "Embedded",
    "copy_field",
    "deep_fields",
    # Conversion
    "TypeConverter",
    "FieldNameMapping",
    "DEFAULT_TEMPORAL_CONVERTERS",
    "with_temporal_converters",
    "Nullable",
    "Scanner",
    "Valuer",
    # Configuration
    "StructoSettings",
    "get_settings",
    "default_option",
    "enable_logging",
    "disable_logging",
    # Errors
    "CopyError",
    "InvalidCopyDestinationError",
    "InvalidCopyFromError",
    "MapKeyNotMatchError",
    "NotSupportedError",
    "FieldNameTagStartNotUpperCaseError",
    "ConverterError",
    "MustCopyError",
    "MustCopyFault",
]
