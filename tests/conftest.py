"""Shared fixtures for structo tests."""

from dataclasses import dataclass, field

import pytest
from loguru import logger

from structo import disable_logging, enable_logging, get_settings


@dataclass
class Address:
    city: str = ""
    zip_code: str = ""


@dataclass
class User:
    id: int = 0
    name: str = ""
    address: Address = field(default_factory=Address)
    active: bool = False


@dataclass
class Location:
    city: str = ""
    zip_code: str = ""


@dataclass
class Member:
    """Same field names as `User`, different nested record type."""

    id: int = 0
    name: str = ""
    address: Location = field(default_factory=Location)
    active: bool = False


@pytest.fixture
def user():
    """Fully populated user record."""
    return User(
        id=7,
        name="Ada Lovelace",
        address=Address(city="London", zip_code="N1 9GU"),
        active=True,
    )


@pytest.fixture
def member_cls():
    """Destination record type mirroring `User`."""
    return Member


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are re-read from the environment for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def log_messages():
    """Capture structo log records at DEBUG level and above."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG")
    enable_logging()
    yield messages
    disable_logging()
    logger.remove(handler_id)
