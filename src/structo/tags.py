"""Field tag parsing and the must-copy check."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag
from typing import Any

from loguru import logger

from .errors import FieldNameTagStartNotUpperCaseError, MustCopyError, MustCopyFault
from .fields import deep_fields


class TagFlag(IntFlag):
    NONE = 0
    # The destination field must be copied to
    MUST = 1
    # A missed `MUST` field raises `MustCopyError` instead of `MustCopyFault`
    NO_PANIC = 2
    # The destination field is never written
    IGNORE = 4
    # Set while copying, once the field has received a value
    HAS_COPIED = 8


@dataclass
class TagNameMapping:
    field_to_tag: dict[str, str] = field(default_factory=dict)
    tag_to_field: dict[str, str] = field(default_factory=dict)

    def add(self, field_name: str, tag_name: str) -> None:
        self.field_to_tag[field_name] = tag_name
        self.tag_to_field[tag_name] = field_name


@dataclass
class FieldFlags:
    """Tag information for one (destination, source) pair, scoped to one copy."""

    bits: dict[str, TagFlag] = field(default_factory=dict)
    src_names: TagNameMapping = field(default_factory=TagNameMapping)
    dest_names: TagNameMapping = field(default_factory=TagNameMapping)

    def flag(self, name: str) -> TagFlag:
        return self.bits.get(name, TagFlag.NONE)

    def mark_copied(self, name: str) -> None:
        if name in self.bits:
            self.bits[name] |= TagFlag.HAS_COPIED


def parse_tags(tag: str) -> tuple[TagFlag, str]:
    """
    Parse a comma separated field tag.

    Parameters
    ----------
    tag : str
        Tokens ``-`` (ignore the field), ``must``, ``nopanic``, or an explicit
        field name starting with an upper-case letter.

    Returns
    -------
    tuple[TagFlag, str]
        The flags and the explicit name (empty when none is given).

    Raises
    ------
    FieldNameTagStartNotUpperCaseError
        If an explicit name does not start with an upper-case letter.

    Examples
    --------
        >>> parse_tags("must,nopanic")
        (<TagFlag.MUST|NO_PANIC: 3>, '')
        >>> parse_tags("-")
        (<TagFlag.IGNORE: 4>, '')
        >>> parse_tags("Identifier")
        (<TagFlag.NONE: 0>, 'Identifier')
    """
    flags = TagFlag.NONE
    name = ""
    for token in tag.split(","):
        token = token.strip()
        if not token:
            continue
        if token == "-":
            return TagFlag.IGNORE, ""
        if token == "must":
            flags |= TagFlag.MUST
        elif token == "nopanic":
            flags |= TagFlag.NO_PANIC
        elif token[0].isupper():
            name = token
        else:
            raise FieldNameTagStartNotUpperCaseError(
                f"copier field name tag must be start upper case, got {token!r}"
            )
    return flags, name


def get_flags(dest_type: Any, src_type: Any) -> FieldFlags:
    """
    Collect tag flags and explicit names of both sides of a copy.

    Only destination fields contribute bits; source tags contribute names.
    Either type may be None (or a non-record type), in which case that side is
    left empty.
    """
    flags = FieldFlags()

    for dest_field in deep_fields(dest_type) if dest_type is not None else ():
        if not dest_field.tag:
            continue
        bits, name = parse_tags(dest_field.tag)
        flags.bits[dest_field.name] = bits
        if name:
            flags.dest_names.add(dest_field.name, name)

    for src_field in deep_fields(src_type) if src_type is not None else ():
        if not src_field.tag:
            continue
        _, name = parse_tags(src_field.tag)
        if name:
            flags.src_names.add(src_field.name, name)

    return flags


def check_must_flags(bits: dict[str, TagFlag]) -> None:
    """
    Verify that every ``must`` field has been copied.

    Raises
    ------
    MustCopyError
        For the first missed field tagged ``must,nopanic``.
    MustCopyFault
        For the first missed field tagged ``must`` alone.
    """
    for name, flags in bits.items():
        if flags & TagFlag.HAS_COPIED or not flags & TagFlag.MUST:
            continue
        logger.warning(f"Field '{name}' has must tag but was not copied")
        if flags & TagFlag.NO_PANIC:
            raise MustCopyError(name)
        raise MustCopyFault(name)
