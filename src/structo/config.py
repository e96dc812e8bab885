"""Environment driven settings and logging switches."""

from __future__ import annotations

from functools import lru_cache

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from .options import CopyOption


class StructoSettings(BaseSettings):
    """
    Process-wide defaults, read from ``STRUCTO_*`` environment variables.

    Attributes
    ----------
    check_must : bool
        Enforce ``must`` tags in `copy` (``STRUCTO_CHECK_MUST``).
    log_enabled : bool
        Emit the package's log records at import (``STRUCTO_LOG_ENABLED``).
    """

    model_config = SettingsConfigDict(
        env_prefix="STRUCTO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    check_must: bool = False
    log_enabled: bool = False


@lru_cache(maxsize=1)
def get_settings() -> StructoSettings:
    """Settings loaded once; call ``get_settings.cache_clear()`` to reload."""
    return StructoSettings()


def default_option() -> CopyOption:
    """The option used by `copy`: shallow, no converters, no renames."""
    return CopyOption(check_must=get_settings().check_must)


def enable_logging() -> None:
    logger.enable("structo")


def disable_logging() -> None:
    logger.disable("structo")
