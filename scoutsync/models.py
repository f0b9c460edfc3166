"""Canonical local rows for mirrored and outbox entities.

Field names match the column names of the local store so a row can be
written with ``dataclasses.asdict``.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Scope:
    """The (event, organization) pair that bounds a sync pass."""

    event_code: str | None = None
    organization_id: int | None = None


# ==================== Mirrored entities ====================


@dataclass(frozen=True)
class Team:
    team_number: int
    team_name: str
    location: str | None = None


@dataclass(frozen=True)
class Event:
    event_key: str
    event_name: str
    short_name: str | None = None
    year: int = 0
    week: int = 0


@dataclass(frozen=True)
class MatchSchedule:
    event_key: str
    match_level: str
    match_number: int
    red1_id: int
    red2_id: int
    red3_id: int
    blue1_id: int
    blue2_id: int
    blue3_id: int

    @property
    def team_numbers(self) -> tuple[int, ...]:
        return (
            self.red1_id,
            self.red2_id,
            self.red3_id,
            self.blue1_id,
            self.blue2_id,
            self.blue3_id,
        )


@dataclass(frozen=True)
class TeamEvent:
    event_key: str
    team_number: int


@dataclass(frozen=True)
class Organization:
    id: int
    name: str
    team_number: int | None = None


@dataclass(frozen=True)
class UserOrganization:
    """The current user's membership in an organization."""

    organization_id: int
    user_organization_id: int | None = None
    role: str | None = None


@dataclass(frozen=True)
class AlreadyScouted:
    event_code: str
    organization_id: int
    team_number: int
    match_level: str
    match_number: int


@dataclass(frozen=True)
class AlreadyPitScouted:
    event_code: str
    organization_id: int
    team_number: int


@dataclass(frozen=True)
class AlreadyPrescouted:
    event_key: str
    team_number: int
    match_level: str
    match_number: int


@dataclass(frozen=True)
class AlreadySuperScouted:
    event_code: str
    match_level: str
    match_number: int
    alliance: str  # "red" or "blue"


@dataclass(frozen=True)
class AlreadyRobotPhoto:
    event_key: str
    team_number: int
    image_id: str
    image_url: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SuperScoutField:
    """One selectable comment tag of the super-scout vocabulary."""

    key: str
    label: str


@dataclass(frozen=True)
class PickListRank:
    rank: int
    team_number: int
    notes: str = ""
    dnp: bool = False  # do not pick


@dataclass(frozen=True)
class PickList:
    """An organization's ranked alliance-selection list.

    ``ranks`` are stored as child rows and replaced as a whole whenever
    the list is pulled.
    """

    id: str
    organization_id: int
    title: str
    season: int | None = None
    event_key: str | None = None
    notes: str = ""
    created_at: int | None = None  # unix seconds
    updated_at: int | None = None
    favorited: bool = False
    ranks: tuple[PickListRank, ...] = ()


# ==================== Outbox entities ====================


@dataclass
class MatchRecord:
    event_key: str
    team_number: int
    match_level: str
    match_number: int
    data: dict[str, Any] = field(default_factory=dict)  # season-specific scoring
    notes: str | None = None


@dataclass
class PitRecord:
    event_key: str
    team_number: int
    data: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None


@dataclass
class PrescoutRecord:
    event_key: str
    team_number: int
    match_level: str
    match_number: int
    data: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None


@dataclass
class SuperScoutRecord:
    event_key: str
    team_number: int
    match_level: str
    match_number: int
    alliance: str | None = None
    start_position: str | None = None
    driver_rating: int | None = None
    robot_overall: int | None = None
    defense_rating: int | None = None
    notes: str | None = None
    selections: set[str] = field(default_factory=set)  # selected field keys


@dataclass
class RobotPhoto:
    event_key: str
    team_number: int
    local_uri: str
    description: str | None = None
