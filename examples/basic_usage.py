"""
Basic Usage Example: Moving Player Records Between Layers

This example demonstrates the core structo workflow:
1. Copy an API payload (pydantic) into a domain record (dataclass)
2. Copy the domain record into a database row (SQLAlchemy)
3. Use options for renames, converters and must-copy checks
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from structo import (
    CopyOption,
    FieldNameMapping,
    MustCopyError,
    Ref,
    Tag,
    TypeConverter,
    copy,
    copy_with_option,
    with_temporal_converters,
)


# API payload as received from a client
class PlayerPayload(BaseModel):
    player_id: int
    name: str
    team: str
    points_per_game: str
    joined_at: str


# Domain record
@dataclass
class Stats:
    points_per_game: float = 0.0
    games_played: int = 0


@dataclass
class Player:
    player_id: int = 0
    name: str = ""
    team: str = ""
    joined_at: Optional[datetime] = None
    stats: Stats = field(default_factory=Stats)
    # Never filled from outside
    internal_rating: Annotated[float, Tag("-")] = 0.0


# Database row
class Base(DeclarativeBase):
    pass


class PlayerRow(Base):
    __tablename__ = "players"

    player_id: Mapped[int] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(String(100))
    team: Mapped[str] = mapped_column(String(50))
    joined_at: Mapped[Optional[datetime]]


@dataclass
class Roster:
    team: Annotated[str, Tag("must,nopanic")] = ""
    name: str = ""


def main():
    payload = PlayerPayload(
        player_id=23,
        name="Ada Lovelace",
        team="LDN",
        points_per_game="27.5",
        joined_at="2024-05-01T09:30:00",
    )

    # ISO strings become datetimes, points are parsed with a custom converter
    option = with_temporal_converters(
        CopyOption(
            converters=[
                TypeConverter(src_type=str, dst_type=float, fn=float),
            ]
        )
    )
    player = Player(internal_rating=9.1)
    copy_with_option(player, payload, option)
    # Nested stats are filled from the flat payload by a second copy
    copy_with_option(player.stats, payload, option)
    print(f"Domain record: {player}")

    # Rename name -> full_name on the way into the database
    row_option = CopyOption(
        field_name_mapping=[
            FieldNameMapping(
                src_type=Player,
                dst_type=PlayerRow,
                mapping={"name": "full_name"},
            )
        ]
    )
    row_ref = Ref(type_=PlayerRow)
    copy_with_option(row_ref, player, row_option)
    row = row_ref.value
    print(f"Row: {row.player_id} {row.full_name} {row.team} {row.joined_at}")

    # Sequences are copied element by element
    players = [player, Player(player_id=24, name="Grace Hopper", team="NYC")]
    roster = Ref(type_=list[Roster])
    copy(roster, players)
    print(f"Roster: {roster.value}")

    # must,nopanic fields that were not copied are reported
    try:
        copy_with_option(Roster(), Stats(), CopyOption(check_must=True))
    except MustCopyError as exc:
        print(f"Rejected: {exc}")


if __name__ == "__main__":
    main()
