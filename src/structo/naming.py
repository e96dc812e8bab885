"""Resolution of source and destination field names."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .tags import FieldFlags


def field_names_mapping(
    registry: Mapping[tuple[Any, Any], Mapping[str, str]],
    from_type: Any,
    to_type: Any,
) -> dict[str, str]:
    """Rename table registered for the exact ``(from_type, to_type)`` pair."""
    return dict(registry.get((from_type, to_type), {}))
def _tagged_field(
    tag_to_field: Mapping[str, str], name: str, case_sensitive: bool
) -> str | None:
    """Field carrying the tag `name`; tags match snake_case names when folding."""
    if name in tag_to_field:
        return tag_to_field[name]
    if not case_sensitive:
        folded = name.casefold()
        for tag, field_name in tag_to_field.items():
            if tag.casefold() == folded:
                return field_name
    return None


def resolve_field_names(
    name: str,
    flags: FieldFlags,
    mapping: Mapping[str, str] | None = None,
    case_sensitive: bool = True,
) -> tuple[str, str]:
    """
    Compute the effective source and destination names for a field.

    An explicit rename from a `FieldNameMapping` wins outright. Otherwise the
    destination name comes from the source field's tag (translated through the
    destination tag table when a destination field carries the same tag
    name), and the source name symmetrically from the destination tags.

    Parameters
    ----------
    name : str
        Name of the field being resolved, as declared on the source record.
    flags : FieldFlags
        Tag tables of the current copy.
    mapping : Mapping[str, str], optional
        Source name to destination name renames.
    case_sensitive : bool, default True
        When False, a tag such as ``Name`` also matches the field ``name``.

    Returns
    -------
    tuple[str, str]
        ``(source_name, destination_name)``.

    Examples
    --------
        >>> resolve_field_names("name", FieldFlags(), {"name": "full_name"})
        ('name', 'full_name')
    """
    if mapping and name in mapping:
        return name, mapping[name]

    dest_name = ""
    src_tag = flags.src_names.field_to_tag.get(name)
    if src_tag is not None:
        dest_name = flags.dest_names.tag_to_field.get(src_tag, src_tag)
    else:
        dest_name = _tagged_field(flags.dest_names.tag_to_field, name, case_sensitive) or ""
    dest_name = dest_name or name

    src_name = ""
    dest_tag = flags.dest_names.field_to_tag.get(name)
    if dest_tag is not None:
        src_name = flags.src_names.tag_to_field.get(dest_tag, dest_tag)
    else:
        src_name = _tagged_field(flags.src_names.tag_to_field, name, case_sensitive) or ""
    src_name = src_name or name

    return src_name, dest_name
