"""
Identity resolution: display name -> stable user record.

There are no accounts; the exact name is the key, and the first request that
uses a name creates the user.
"""

import re
from typing import Optional, Union

from constants import (
    AVATAR_MAX_INITIALS, DEFAULT_TEAM, PLAYER_NAME_MIN_LENGTH, PLAYER_NAME_MAX_LENGTH, TEAM_MAX_LENGTH
)
from errors import UserNotFound, ValidationError
from logger import get_logger
from models import ByName, ByUserId, User
from storage import Storage

logger = get_logger(__name__)


def make_initials(name: str) -> str:
    """First letter of each word, upper-cased, at most two."""
    return "".join(word[0].upper() for word in name.split())[:AVATAR_MAX_INITIALS]


def make_username(name: str) -> str:
    return re.sub(r"\s+", ".", name.strip().lower())


def clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not PLAYER_NAME_MIN_LENGTH <= len(name) <= PLAYER_NAME_MAX_LENGTH:
        raise ValidationError(
            "name",
            f"Name must be between {PLAYER_NAME_MIN_LENGTH} and {PLAYER_NAME_MAX_LENGTH} characters",
        )
    return name


def clean_team(team: Optional[str]) -> Optional[str]:
    if team is None:
        return None
    team = team.strip()
    if not team:
        return None
    if len(team) > TEAM_MAX_LENGTH:
        raise ValidationError("team", f"Team must be at most {TEAM_MAX_LENGTH} characters")
    return team


class IdentityResolver:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def find_user(self, name: str) -> Optional[User]:
        return self._storage.get_user_by_name(name.strip())

    def resolve_user(self, name: str, team: Optional[str] = None) -> User:
        """Return the user called ``name``, creating it if absent.

        An existing user's team is left alone; use ``update_team`` for that.
        """
        name = clean_name(name)
        team = clean_team(team)
        with self._storage.transaction():
            existing = self._storage.get_user_by_name(name)
            if existing is not None:
                return existing
            user = self._storage.create_user(
                username=make_username(name),
                name=name,
                team=team or DEFAULT_TEAM,
                avatar=make_initials(name),
            )
        logger.info("User created: id=%d, name=%s", user.id, user.name)
        return user

    def resolve(self, ref: Union[ByName, ByUserId]) -> User:
        if isinstance(ref, ByUserId):
            user = self._storage.get_user(ref.user_id)
            if user is None:
                raise UserNotFound(ref.user_id)
            return user
        return self.resolve_user(ref.name, ref.team)

    def lookup(self, ref: Union[ByName, ByUserId]) -> Optional[User]:
        """Like ``resolve`` but never creates a user."""
        if isinstance(ref, ByUserId):
            return self._storage.get_user(ref.user_id)
        return self.find_user(ref.name)

    def get_user(self, user_id: int) -> User:
        user = self._storage.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def update_team(self, user_id: int, team: str) -> User:
        team = clean_team(team)
        if team is None:
            raise ValidationError("team", "Team must not be empty")
        user = self._storage.update_user_team(user_id, team)
        if user is None:
            raise UserNotFound(user_id)
        logger.info("User team updated: id=%d, team=%s", user_id, team)
        return user

    def list_users(self) -> list[User]:
        return self._storage.list_users()
