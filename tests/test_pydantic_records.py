"""Tests for copying pydantic models."""

from typing import Annotated, Optional

import pytest
from conftest import Address, User
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from structo import (
    CopyOption,
    InvalidCopyDestinationError,
    Ref,
    Tag,
    copy,
    copy_with_option,
)


class AddressModel(BaseModel):
    city: str = ""
    zip_code: str = ""


class UserModel(BaseModel):
    id: int = 0
    name: str = ""
    address: AddressModel = Field(default_factory=AddressModel)
    active: bool = False


class Employee(BaseModel):
    name: str = ""
    salary: int = Field(default=0, json_schema_extra={"copier": "-"})
    title: Annotated[str, Tag("Role")] = ""


class Staff(BaseModel):
    name: str = ""
    salary: int = 0
    role: Annotated[str, Tag("Role")] = ""


class FrozenUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""


class Account(BaseModel):
    login: str = ""
    nickname: Optional[str] = None

    _session: str = PrivateAttr(default="")
    _attempts: int = PrivateAttr(default=0)


class TestPydanticRecords:
    """Test pydantic models as sources and destinations."""

    def test_dataclass_to_model(self, user):
        """Dataclass fields fill model fields, nested records included."""
        model = UserModel()
        copy(model, user)
        assert model.model_dump() == {
            "id": 7,
            "name": "Ada Lovelace",
            "address": {"city": "London", "zip_code": "N1 9GU"},
            "active": True,
        }

    def test_model_to_dataclass(self):
        """Model fields fill dataclass fields."""
        destination = User()
        copy(
            destination,
            UserModel(id=3, name="Grace", address=AddressModel(city="Arlington")),
        )
        assert destination == User(id=3, name="Grace", address=Address(city="Arlington"))

    def test_json_schema_extra_ignore(self):
        """The copier key of json_schema_extra holds the tag."""
        employee = Employee(name="old", salary=100)
        copy(employee, Staff(name="new", salary=5))
        assert employee.name == "new"
        assert employee.salary == 100

    def test_annotated_tag_names(self):
        """Fields with the same tag name are linked across models."""
        employee = Employee()
        copy(employee, Staff(role="engineer"))
        assert employee.title == "engineer"

    def test_ref_allocates_model(self):
        """An empty typed Ref receives a constructed model."""
        ref = Ref(type_=UserModel)
        copy(ref, User(id=1, name="Ada"))
        assert isinstance(ref.value, UserModel)
        assert ref.value.name == "Ada"
        assert isinstance(ref.value.address, AddressModel)

    def test_frozen_model_through_ref(self):
        """Frozen models are built through a Ref."""
        ref = Ref(type_=FrozenUser)
        copy(ref, User(id=5, name="Ada"))
        assert ref.value.id == 5
        assert ref.value.name == "Ada"

    def test_frozen_model_root_rejected(self):
        """A frozen model cannot be the destination itself."""
        with pytest.raises(InvalidCopyDestinationError):
            copy(FrozenUser(id=1), User())

    def test_optional_field(self):
        """None clears an optional field."""
        account = Account(login="ada", nickname="countess")
        copy(account, Account(login="ada"))
        assert account.nickname is None

    def test_private_attributes_merged(self):
        """Unset private attributes are taken from a source of the same type."""
        destination = Account()
        destination._session = "mine"
        source = Account(login="ada")
        source._session = "theirs"
        source._attempts = 2
        copy(destination, source)
        assert destination.login == "ada"
        assert destination._session == "mine"
        assert destination._attempts == 2

    def test_deep_copy(self):
        """Nested models are duplicated with deep_copy."""
        source = UserModel(address=AddressModel(city="London"))
        destination = UserModel()
        copy_with_option(destination, source, CopyOption(deep_copy=True))
        assert destination.address == source.address
        assert destination.address is not source.address
