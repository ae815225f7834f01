from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator
from constants import (
    MATCH_CAPACITY_MIN, MATCH_CAPACITY_MAX, MATCH_TYPE_DEFAULT, MATCH_TYPES,
    MATCH_STATUS_OPEN, NOTIFICATION_KINDS, NOTIFICATION_MESSAGE_MAX_LENGTH,
    PLAYER_NAME_MIN_LENGTH, PLAYER_NAME_MAX_LENGTH, TEAM_MAX_LENGTH, WEEKDAYS
)
from config import DEFAULT_CAPACITY


# ============ STORED RECORDS ============

class User(BaseModel):
    id: int
    username: str
    name: str
    team: Optional[str] = None
    avatar: str


class Match(BaseModel):
    id: int
    match_date: date
    time_slot: Optional[str] = None
    time: Optional[str] = None
    match_type: str = MATCH_TYPE_DEFAULT
    capacity: int
    status: str = MATCH_STATUS_OPEN
    is_recurring: bool = False
    recurring_day: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime


class Rsvp(BaseModel):
    id: int
    match_id: int
    user_id: int
    status: str
    joined_at: datetime


class Notification(BaseModel):
    id: int
    user_id: int
    match_id: int
    kind: str
    message: str
    scheduled_for: datetime
    sent: bool = False
    created_at: datetime


# ============ PLAYER REFERENCES ============

class ByName(BaseModel):
    kind: Literal["name"]
    name: str = Field(..., min_length=PLAYER_NAME_MIN_LENGTH, max_length=PLAYER_NAME_MAX_LENGTH)
    team: Optional[str] = Field(default=None, max_length=TEAM_MAX_LENGTH)

    @field_validator('name')
    @classmethod
    def name_cleaned(cls, v):
        return v.strip()


class ByUserId(BaseModel):
    kind: Literal["user_id"]
    user_id: int


# ============ REQUESTS ============

class MatchCreate(BaseModel):
    match_date: date
    time_slot: Optional[str] = Field(default=None, min_length=1, max_length=20)
    time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    match_type: str = Field(default=MATCH_TYPE_DEFAULT)
    capacity: int = Field(default=DEFAULT_CAPACITY, ge=MATCH_CAPACITY_MIN, le=MATCH_CAPACITY_MAX)
    is_recurring: bool = False
    recurring_day: Optional[str] = None
    created_by: Optional[int] = None

    @field_validator('match_type')
    @classmethod
    def validate_match_type(cls, v):
        if v not in MATCH_TYPES:
            raise ValueError(f"Invalid match type '{v}'. Must be one of {', '.join(MATCH_TYPES)}")
        return v

    @field_validator('recurring_day')
    @classmethod
    def validate_day(cls, v):
        if v is None:
            return v
        if v.lower() not in WEEKDAYS:
            raise ValueError(f"Invalid day '{v}'. Must be a valid day of the week")
        return v.lower()


class TeamUpdate(BaseModel):
    team: str = Field(..., min_length=1, max_length=TEAM_MAX_LENGTH)


class NotificationCreate(BaseModel):
    user_id: int
    match_id: int
    kind: str = Field(..., pattern=r"^(" + "|".join(NOTIFICATION_KINDS) + r")$")
    message: str = Field(..., min_length=1, max_length=NOTIFICATION_MESSAGE_MAX_LENGTH)
    scheduled_for: datetime


# ============ RESPONSES ============

class RsvpWithUser(Rsvp):
    user: Optional[User] = None


class MatchWithRsvps(Match):
    confirmed_count: int
    waitlist_count: int
    rsvps: list[RsvpWithUser]


class LeaveResponse(BaseModel):
    success: bool
    promoted: list[Rsvp]


class PlayerStat(BaseModel):
    user_id: int
    user: User
    game_count: int


class UserStats(BaseModel):
    user: User
    this_week_games: int
    total_games: int
