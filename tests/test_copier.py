"""Tests for the copy engine."""

from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

import pytest
from conftest import Address, Location, Member, User

from structo import (
    ConverterError,
    CopyOption,
    Embedded,
    FieldNameMapping,
    InvalidCopyDestinationError,
    InvalidCopyFromError,
    MapKeyNotMatchError,
    MustCopyError,
    MustCopyFault,
    Ref,
    Tag,
    TypeConverter,
    copy,
    copy_field,
    copy_with_option,
)


@dataclass
class Profile:
    name: str = ""
    salary: Annotated[int, Tag("-")] = 0


@dataclass
class Badge:
    code: Annotated[str, Tag("must,nopanic")] = ""
    owner: str = ""


@dataclass
class StrictBadge:
    code: Annotated[str, Tag("must")] = ""
    owner: str = ""


@dataclass
class Visitor:
    owner: str = ""
    code: str = ""


@dataclass
class Holder:
    owner: str = ""


@dataclass
class Pass:
    badge: Badge = field(default_factory=Badge)


@dataclass
class StrictPass:
    badge: StrictBadge = field(default_factory=StrictBadge)


@dataclass
class Ticket:
    badge: Holder = field(default_factory=Holder)


@dataclass
class Team:
    name: str = ""
    members: list[str] = field(default_factory=list)
    lead: Address = field(default_factory=Address)


@dataclass
class Lower:
    name: str = ""


@dataclass
class Upper:
    NAME: str = ""


@dataclass
class Contact:
    full_name: str = ""
    id: int = 0


@dataclass
class Login:
    login: Annotated[str, Tag("Username")] = ""


@dataclass
class Account:
    user: str = copy_field("Username", default="")


@dataclass
class Audit:
    created_by: str = ""
    revision: int = 0


@dataclass
class Document:
    title: str = ""
    audit: Annotated[Audit, Embedded()] = field(default_factory=Audit)


@dataclass
class Note:
    title: str = ""
    audit: Optional[Audit] = copy_field(embedded=True, default=None)


@dataclass
class FlatDocument:
    title: str = ""
    created_by: str = ""
    revision: int = 0


@dataclass
class Scores:
    table: dict[int, int] = field(default_factory=dict)
    label: str = ""


@dataclass
class RawScores:
    table: dict[str, int] = field(default_factory=dict)
    label: str = ""


@dataclass
class Session:
    user: str = ""
    _token: str = ""
    _retries: int = 0


@dataclass
class Stamp:
    label: str = ""
    when: str = ""


@dataclass
class RawStamp:
    label: str = ""
    when: int = 0


@dataclass(frozen=True)
class FrozenStamp:
    label: str = ""
    when: str = ""


@dataclass
class Envelope:
    stamp: FrozenStamp = field(default_factory=FrozenStamp)


@dataclass
class Tree:
    value: int = 0
    children: list["Tree"] = field(default_factory=list)


@dataclass
class Squad:
    leaders: list[Member] = field(default_factory=list)


@dataclass
class RawSquad:
    leaders: User = field(default_factory=User)


@dataclass
class Directory:
    full_name: Annotated[str, Tag("Name")] = ""


def shouting_option():
    return CopyOption(
        converters=[
            TypeConverter(
                src_type=User,
                dst_type=Member,
                fn=lambda u: Member(id=u.id, name=u.name.upper()),
            )
        ]
    )


class TestContract:
    """Test destination and source validation."""

    @pytest.mark.parametrize("destination", [None, 5, "text", (1, 2), FrozenStamp()])
    def test_invalid_destination(self, destination, user):
        """Values that cannot be updated in place are rejected."""
        with pytest.raises(InvalidCopyDestinationError):
            copy(destination, user)

    def test_invalid_destination_is_type_error(self, user):
        """The destination error is also a TypeError."""
        with pytest.raises(TypeError):
            copy(None, user)

    def test_none_source(self):
        """A None source is rejected."""
        with pytest.raises(InvalidCopyFromError):
            copy(User(), None)

    def test_empty_ref_source(self):
        """A Ref holding nothing is rejected as a source."""
        with pytest.raises(InvalidCopyFromError):
            copy(User(), Ref())


class TestRecords:
    """Test record to record copies."""

    def test_identity_round_trip(self, user):
        """Copying into the same record type reproduces every field."""
        destination = User()
        copy(destination, user)
        assert destination == user

    def test_shape_projection(self, user, member_cls):
        """Fields with equal names are copied across record types."""
        member = member_cls()
        copy(member, user)
        assert member == Member(
            id=7,
            name="Ada Lovelace",
            address=Location(city="London", zip_code="N1 9GU"),
            active=True,
        )

    def test_nested_record_kept(self, user):
        """Nested records of another type are copied into the existing instance."""
        member = Member()
        location = member.address
        copy(member, user)
        assert member.address is location

    def test_ref_destination_allocated(self, user):
        """A typed empty Ref receives a fresh record."""
        ref = Ref(type_=Member)
        copy(ref, user)
        assert ref.value.name == "Ada Lovelace"
        assert ref.value.address == Location("London", "N1 9GU")

    def test_ref_source_unwrapped(self, user):
        """Ref sources are copied from their content."""
        destination = User()
        copy(destination, Ref(user))
        assert destination == user

    def test_ignore_tag(self):
        """Ignored destination fields keep their value."""
        profile = Profile(name="old", salary=100)
        copy(profile, Profile(name="new", salary=5))
        assert profile == Profile(name="new", salary=100)

    def test_ignore_empty(self, user):
        """Zero source values are skipped with ignore_empty."""
        destination = User(id=1, name="kept")
        copy_with_option(destination, User(id=2), CopyOption(ignore_empty=True))
        assert destination.id == 2
        assert destination.name == "kept"

    def test_zero_values_copied_by_default(self):
        """Without ignore_empty zero values overwrite the destination."""
        destination = User(id=1, name="replaced")
        copy(destination, User(id=2))
        assert destination.name == ""

    def test_field_name_mapping(self, user):
        """Rename tables map source fields onto other destination fields."""
        option = CopyOption(
            field_name_mapping=[
                FieldNameMapping(src_type=User, dst_type=Contact, mapping={"name": "full_name"})
            ]
        )
        contact = Contact()
        copy_with_option(contact, user, option)
        assert contact == Contact(full_name="Ada Lovelace", id=7)

    def test_tag_names_link_fields(self):
        """Fields tagged with the same name are copied into each other."""
        account = Account()
        copy(account, Login(login="ada"))
        assert account.user == "ada"

    def test_self_referencing_records(self):
        """Records nested through sequences of their own type are copied."""
        tree = Tree(1, [Tree(2), Tree(3, [Tree(4)])])
        copy_tree = Tree()
        copy_with_option(copy_tree, tree, CopyOption(deep_copy=True))
        assert copy_tree == tree
        assert copy_tree.children[1] is not tree.children[1]


class TestMustCopy:
    """Test the must-copy policy through the engine."""

    def test_nopanic_error(self):
        """must,nopanic fields that were not copied fail the copy."""
        with pytest.raises(MustCopyError) as exc_info:
            copy_with_option(Badge(), Lower(name="x"), CopyOption(check_must=True))
        assert exc_info.value.field == "code"

    def test_fault(self):
        """must fields without nopanic raise the fault."""
        with pytest.raises(MustCopyFault):
            copy_with_option(StrictBadge(), Lower(name="x"), CopyOption(check_must=True))

    def test_satisfied(self):
        """Copied must fields pass the check."""
        badge = StrictBadge()
        copy_with_option(badge, Visitor(owner="ada", code="A1"), CopyOption(check_must=True))
        assert badge.code == "A1"

    def test_check_is_opt_in(self):
        """Without check_must nothing is enforced."""
        copy(StrictBadge(), Lower(name="x"))

    def test_check_from_environment(self, monkeypatch):
        """STRUCTO_CHECK_MUST enables the check for copy()."""
        monkeypatch.setenv("STRUCTO_CHECK_MUST", "true")
        with pytest.raises(MustCopyError):
            copy(Badge(), Lower(name="x"))

    def test_nested_error_swallowed(self):
        """A nested nopanic failure does not fail the outer copy."""
        copy_with_option(Pass(), Ticket(badge=Holder(owner="ada")), CopyOption(check_must=True))

    def test_nested_fault_escapes(self):
        """The fault passes through the lenient nested fallback."""
        with pytest.raises(MustCopyFault):
            copy_with_option(
                StrictPass(), Ticket(badge=Holder(owner="ada")), CopyOption(check_must=True)
            )


class TestDeepCopy:
    """Test aliasing versus duplication."""

    def test_alias_by_default(self):
        """Without deep_copy nested values are shared."""
        source = Team(name="core", members=["ada"], lead=Address("London"))
        destination = Team()
        copy(destination, source)
        assert destination.members is source.members
        assert destination.lead is source.lead

    def test_deep_copy(self):
        """With deep_copy nested values are duplicated."""
        source = Team(name="core", members=["ada"], lead=Address("London"))
        destination = Team()
        copy_with_option(destination, source, CopyOption(deep_copy=True))
        assert destination == source
        source.members.append("grace")
        source.lead.city = "Paris"
        assert destination.members == ["ada"]
        assert destination.lead.city == "London"

    def test_deep_copy_into_dynamic(self, user):
        """Dynamic destinations receive a deep copy of the source."""
        ref = Ref()
        copy_with_option(ref, user, CopyOption(deep_copy=True))
        assert ref.value == user
        assert ref.value is not user
        assert ref.value.address is not user.address


class TestCaseSensitivity:
    """Test field name matching."""

    def test_case_insensitive(self):
        """Names match regardless of case by default."""
        upper = Upper()
        copy_with_option(upper, Lower(name="Ada"), CopyOption(case_sensitive=False))
        assert upper.NAME == "Ada"

    def test_case_sensitive(self):
        """Exact matching leaves differently cased fields alone."""
        upper = Upper()
        copy_with_option(upper, Lower(name="Ada"), CopyOption(case_sensitive=True))
        assert upper.NAME == ""

    def test_tag_matches_snake_case_field(self):
        """Tag names match source field names regardless of case by default."""
        directory = Directory()
        copy(directory, Lower(name="Ada"))
        assert directory.full_name == "Ada"


class TestConverters:
    """Test converters at record and field level."""

    def test_record_converter_precedence(self, user):
        """A record pair converter replaces field copying."""
        replacement = Member(id=-1, name="converted")
        option = CopyOption(
            converters=[TypeConverter(src_type=User, dst_type=Member, fn=lambda u: replacement)]
        )
        member = Member()
        copy_with_option(member, user, option)
        assert member == replacement

    def test_field_converter(self):
        """Field values go through converters for their exact pair."""
        option = CopyOption(
            converters=[TypeConverter(src_type=int, dst_type=str, fn=lambda v: f"t+{v}")]
        )
        stamp = Stamp()
        copy_with_option(stamp, RawStamp(label="x", when=5), option)
        assert stamp == Stamp(label="x", when="t+5")

    def test_field_converter_failure_propagates(self):
        """Converter failures abort the copy."""

        def explode(value):
            raise ValueError("bad")

        option = CopyOption(converters=[TypeConverter(src_type=int, dst_type=str, fn=explode)])
        with pytest.raises(ConverterError):
            copy_with_option(Stamp(), RawStamp(when=5), option)

    def test_record_converter_into_sequence(self, user):
        """A single record converted into a sequence becomes its first element."""
        ref = Ref(type_=list[Member])
        copy_with_option(ref, user, shouting_option())
        assert ref.value == [Member(id=7, name="ADA LOVELACE")]

    def test_record_converter_per_element(self):
        """Every element of a record sequence goes through the pair converter."""
        ref = Ref(type_=list[Member])
        users = [User(id=1, name="ada"), User(id=2, name="bob")]
        copy_with_option(ref, users, shouting_option())
        assert ref.value == [Member(id=1, name="ADA"), Member(id=2, name="BOB")]

    def test_record_converter_into_sequence_field(self, user):
        """A record field copied into a sequence field keeps the sequence."""
        squad = Squad()
        copy_with_option(squad, RawSquad(leaders=user), shouting_option())
        assert squad.leaders == [Member(id=7, name="ADA LOVELACE")]

    def test_record_converter_sequence_into_record(self):
        """Sequence elements converted into a single record apply in order."""
        member = Member()
        users = [User(id=1, name="ada"), User(id=2, name="bob")]
        copy_with_option(member, users, shouting_option())
        assert member == Member(id=2, name="BOB")

    def test_record_converter_for_mapping_values(self, user):
        """Mapping values go through the pair converter."""
        ref = Ref(type_=dict[str, Member])
        copy_with_option(ref, {"ada": user}, shouting_option())
        assert ref.value == {"ada": Member(id=7, name="ADA LOVELACE")}


class TestEmbedded:
    """Test promotion of embedded record fields."""

    def test_embedded_to_flat(self):
        """Promoted source fields reach flat destination fields."""
        flat = FlatDocument()
        copy(flat, Document(title="Report", audit=Audit(created_by="ada", revision=3)))
        assert flat == FlatDocument(title="Report", created_by="ada", revision=3)

    def test_flat_to_embedded(self):
        """Flat source fields reach promoted destination fields."""
        document = Document()
        copy(document, FlatDocument(title="Report", created_by="ada", revision=3))
        assert document == Document(title="Report", audit=Audit(created_by="ada", revision=3))

    def test_none_ancestor_allocated(self):
        """None embedding records are allocated before writing."""
        note = Note()
        copy(note, FlatDocument(title="Report", created_by="ada"))
        assert note.audit == Audit(created_by="ada")

    def test_none_ancestor_on_source(self):
        """Promoted fields under a None source ancestor are skipped."""
        flat = FlatDocument(created_by="kept")
        copy(flat, Note(title="Report"))
        assert flat == FlatDocument(title="Report", created_by="kept")


class TestMappings:
    """Test mapping copies."""

    def test_key_mismatch(self):
        """Non-convertible keys fail the copy."""
        with pytest.raises(MapKeyNotMatchError):
            copy(Ref(type_=dict[int, int]), {"a": 1})

    def test_allocated_and_converted(self):
        """An empty typed Ref receives a converted mapping."""
        ref = Ref(type_=dict[str, float])
        copy(ref, {"a": 1})
        assert ref.value == {"a": 1.0}
        assert type(ref.value["a"]) is float

    def test_merge_into_existing(self):
        """Entries are added to an existing mapping."""
        destination = {"x": 1}
        copy(destination, {"y": 2})
        assert destination == {"x": 1, "y": 2}

    def test_record_values(self, user):
        """Record values are copied into the destination value type."""
        ref = Ref(type_=dict[str, Member])
        copy(ref, {"ada": user})
        assert ref.value["ada"].name == "Ada Lovelace"
        assert isinstance(ref.value["ada"], Member)

    def test_value_failure_propagates(self):
        """Failures of nested value copies are not swallowed."""
        with pytest.raises(MapKeyNotMatchError):
            copy(Ref(type_=dict[str, dict[int, int]]), {"k": {"a": 1}})

    def test_unset_value_is_zero(self):
        """Values that cannot be copied leave the zero value, not None."""
        ref = Ref(type_=dict[str, int])
        copy(ref, {"a": "x"})
        assert ref.value == {"a": 0}


class TestSequences:
    """Test sequence copies."""

    def test_growth_from_nothing(self):
        """An empty typed Ref receives a sequence of the source length."""
        ref = Ref(type_=list[int])
        copy(ref, [1, 2, 3, 4, 5])
        assert ref.value == [1, 2, 3, 4, 5]

    def test_growth_of_existing(self):
        """Shorter destinations grow in place."""
        destination = [9]
        copy(destination, [1, 2, 3])
        assert destination == [1, 2, 3]

    def test_never_truncated(self):
        """Longer destinations keep their tail."""
        destination = [0, 0, 0, 0]
        copy(destination, [1, 2])
        assert destination == [1, 2, 0, 0]

    def test_elements_converted(self):
        """Elements are converted to the declared element type."""
        ref = Ref(type_=tuple[float, ...])
        copy(ref, [1, 2])
        assert ref.value == (1.0, 2.0)

    def test_records_to_records(self):
        """Sequences of records are copied element by element."""
        ref = Ref(type_=list[Member])
        copy(ref, [User(id=1, name="a"), User(id=2, name="b")])
        assert [m.name for m in ref.value] == ["a", "b"]
        assert all(isinstance(m, Member) for m in ref.value)

    def test_record_to_records(self, user):
        """A single record fills a one element sequence."""
        ref = Ref(type_=list[Member])
        copy(ref, user)
        assert len(ref.value) == 1
        assert ref.value[0].name == "Ada Lovelace"

    def test_records_to_record(self):
        """Sequence elements are applied to a single record in order."""
        member = Member()
        copy_with_option(
            member,
            [User(id=1, name="a"), User(id=2, active=True)],
            CopyOption(ignore_empty=True),
        )
        assert member == Member(id=2, name="a", active=True)

    def test_element_failure_swallowed(self):
        """Failed nested element copies leave the zero element."""
        ref = Ref(type_=list[dict[int, int]])
        copy(ref, [{"a": 1}])
        assert ref.value == [{}]


class TestLenientFallback:
    """Test error suppression of nested fallbacks."""

    def test_field_failure_swallowed(self):
        """A failing nested field copy leaves the field and continues."""
        scores = Scores()
        copy(scores, RawScores(table={"a": 1}, label="done"))
        assert scores == Scores(table={}, label="done")

    def test_unsupported_combination_skipped(self):
        """Incompatible field shapes are skipped silently."""

        @dataclass
        class Wrapper:
            payload: Address = field(default_factory=Address)

        @dataclass
        class RawWrapper:
            payload: int = 0

        wrapper = Wrapper()
        copy(wrapper, RawWrapper(payload=5))
        assert wrapper.payload == Address()

    def test_failure_logged(self, log_messages):
        """Swallowed failures are logged at debug level."""
        copy(Scores(), RawScores(table={"a": 1}))
        assert any("table" in message and "DEBUG" in message for message in log_messages)


class TestDynamicDestination:
    """Test destinations declared with a dynamic type."""

    def test_empty_takes_source(self, user):
        """An empty dynamic Ref takes the source itself."""
        ref = Ref()
        copy(ref, user)
        assert ref.value is user

    def test_holding_record(self, user):
        """A dynamic Ref holding a record is copied into."""
        member = Member()
        ref: Ref[Any] = Ref(member)
        copy(ref, user)
        assert ref.value is member
        assert member.name == "Ada Lovelace"

    def test_holding_frozen_record(self):
        """Frozen records are replaced by an updated copy."""
        original = FrozenStamp(label="old", when="then")
        ref = Ref(original)
        copy(ref, Stamp(label="new", when="now"))
        assert ref.value == FrozenStamp(label="new", when="now")
        assert original == FrozenStamp(label="old", when="then")

    def test_commit_on_error(self):
        """Partial writes are committed when the copy fails."""

        def explode(value):
            raise ValueError("bad")

        ref = Ref(Stamp(label="old"))
        option = CopyOption(converters=[TypeConverter(src_type=int, dst_type=str, fn=explode)])
        with pytest.raises(ConverterError):
            copy_with_option(ref, RawStamp(label="new", when=5), option)
        assert ref.value.label == "new"

    def test_holding_scalar(self):
        """A dynamic Ref holding a scalar is converted to that scalar type."""
        ref = Ref(0)
        copy(ref, 2.0)
        assert ref.value == 2
        assert type(ref.value) is int


class TestInternalState:
    """Test handling of underscore attributes."""

    def test_merge(self):
        """Set internal values are kept, unset ones come from the source."""
        destination = Session(_token="keep")
        copy(destination, Session(user="ada", _token="source", _retries=3))
        assert destination.user == "ada"
        assert destination._token == "keep"
        assert destination._retries == 3

    def test_other_types_untouched(self):
        """Internal state is only merged between records of the same type."""

        @dataclass
        class Other:
            user: str = ""
            _token: str = ""

        destination = Session()
        copy(destination, Other(user="ada", _token="source"))
        assert destination == Session(user="ada")


class TestFrozenFields:
    """Test frozen records nested in mutable ones."""

    def test_frozen_field_replaced(self):
        """A frozen nested record is replaced with an updated copy."""
        envelope = Envelope()
        original = envelope.stamp

        @dataclass
        class RawEnvelope:
            stamp: Stamp = field(default_factory=Stamp)

        copy(envelope, RawEnvelope(stamp=Stamp(label="new", when="now")))
        assert envelope.stamp == FrozenStamp(label="new", when="now")
        assert original == FrozenStamp()
