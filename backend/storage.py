"""
Storage contract and the in-memory implementation.

Services only talk to a Storage instance handed to them at construction.
Records are retrievable by id and by foreign key; RSVPs by match and by user.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional

from constants import RSVP_CONFIRMED
from errors import AlreadyJoined, SlotTaken
from models import Match, Notification, Rsvp, User


class Storage(ABC):
    """Operations every backing store must provide."""

    name = "abstract"

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block atomically: everything commits or nothing does."""

    # ── Users ──

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_name(self, name: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, username: str, name: str, team: Optional[str], avatar: str) -> User: ...

    @abstractmethod
    def update_user_team(self, user_id: int, team: str) -> Optional[User]: ...

    @abstractmethod
    def list_users(self) -> list[User]: ...

    # ── Matches ──

    @abstractmethod
    def get_match(self, match_id: int, for_update: bool = False) -> Optional[Match]:
        """Fetch a match; ``for_update`` locks it until the transaction ends."""

    @abstractmethod
    def get_match_by_slot(self, match_date: date, time_slot: str) -> Optional[Match]: ...

    @abstractmethod
    def list_matches(self, start: date, end: date) -> list[Match]:
        """Matches with ``start <= match_date <= end``, ordered by date then id."""

    @abstractmethod
    def create_match(self, **fields) -> Match:
        """Insert a match. Raises SlotTaken on a duplicate (date, slot)."""

    @abstractmethod
    def update_match_status(self, match_id: int, status: str) -> Optional[Match]: ...

    @abstractmethod
    def delete_match(self, match_id: int) -> bool:
        """Remove a match together with its RSVPs and notifications."""

    # ── RSVPs ──

    @abstractmethod
    def get_rsvp(self, match_id: int, user_id: int) -> Optional[Rsvp]: ...

    @abstractmethod
    def list_rsvps_by_match(self, match_id: int) -> list[Rsvp]:
        """RSVPs of one match ordered by id."""

    @abstractmethod
    def list_rsvps_by_user(self, user_id: int) -> list[Rsvp]: ...

    @abstractmethod
    def create_rsvp(self, match_id: int, user_id: int, status: str, joined_at: datetime) -> Rsvp:
        """Insert an RSVP. Raises AlreadyJoined if the pair already has one."""

    @abstractmethod
    def update_rsvp_status(self, rsvp_id: int, status: str) -> Optional[Rsvp]: ...

    @abstractmethod
    def delete_rsvp(self, rsvp_id: int) -> bool: ...

    @abstractmethod
    def count_confirmed(self, match_id: int) -> int: ...

    # ── Notifications ──

    @abstractmethod
    def create_notification(self, user_id: int, match_id: int, kind: str, message: str,
                            scheduled_for: datetime) -> Notification: ...

    @abstractmethod
    def list_notifications_by_user(self, user_id: int) -> list[Notification]: ...

    @abstractmethod
    def mark_notification_sent(self, notification_id: int) -> Optional[Notification]: ...


class MemoryStorage(Storage):
    """Dict-backed store for development and tests.

    Stored records are never mutated in place; updates swap in a copy, so a
    transaction snapshot only needs shallow copies of the tables.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._users: dict[int, User] = {}
        self._matches: dict[int, Match] = {}
        self._rsvps: dict[int, Rsvp] = {}
        self._notifications: dict[int, Notification] = {}
        self._counters = {"user": 0, "match": 0, "rsvp": 0, "notification": 0}

    def _next_id(self, table: str) -> int:
        self._counters[table] += 1
        return self._counters[table]

    def _snapshot(self):
        return (
            dict(self._users),
            dict(self._matches),
            dict(self._rsvps),
            dict(self._notifications),
            dict(self._counters),
        )

    def _restore(self, snapshot) -> None:
        self._users, self._matches, self._rsvps, self._notifications, self._counters = snapshot

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                # Nested blocks join the outer transaction
                yield
                return
            snapshot = self._snapshot()
            self._depth += 1
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    # ── Users ──

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_name(self, name: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._users.values() if u.name == name), None)

    def create_user(self, username: str, name: str, team: Optional[str], avatar: str) -> User:
        with self._lock:
            user = User(id=self._next_id("user"), username=username, name=name, team=team, avatar=avatar)
            self._users[user.id] = user
            return user

    def update_user_team(self, user_id: int, team: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            user = user.model_copy(update={"team": team})
            self._users[user_id] = user
            return user

    def list_users(self) -> list[User]:
        with self._lock:
            return list(self._users.values())

    # ── Matches ──

    def get_match(self, match_id: int, for_update: bool = False) -> Optional[Match]:
        with self._lock:
            return self._matches.get(match_id)

    def get_match_by_slot(self, match_date: date, time_slot: str) -> Optional[Match]:
        with self._lock:
            return next(
                (m for m in self._matches.values() if m.match_date == match_date and m.time_slot == time_slot),
                None,
            )

    def list_matches(self, start: date, end: date) -> list[Match]:
        with self._lock:
            found = [m for m in self._matches.values() if start <= m.match_date <= end]
        return sorted(found, key=lambda m: (m.match_date, m.id))

    def create_match(self, **fields) -> Match:
        with self._lock:
            time_slot = fields.get("time_slot")
            if time_slot is not None and self.get_match_by_slot(fields["match_date"], time_slot):
                raise SlotTaken(fields["match_date"], time_slot)
            fields.setdefault("created_at", datetime.now(timezone.utc))
            match = Match(id=self._next_id("match"), **fields)
            self._matches[match.id] = match
            return match

    def update_match_status(self, match_id: int, status: str) -> Optional[Match]:
        with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                return None
            if match.status != status:
                match = match.model_copy(update={"status": status})
                self._matches[match_id] = match
            return match

    def delete_match(self, match_id: int) -> bool:
        with self._lock:
            if self._matches.pop(match_id, None) is None:
                return False
            self._rsvps = {k: r for k, r in self._rsvps.items() if r.match_id != match_id}
            self._notifications = {k: n for k, n in self._notifications.items() if n.match_id != match_id}
            return True

    # ── RSVPs ──

    def get_rsvp(self, match_id: int, user_id: int) -> Optional[Rsvp]:
        with self._lock:
            return next(
                (r for r in self._rsvps.values() if r.match_id == match_id and r.user_id == user_id),
                None,
            )

    def list_rsvps_by_match(self, match_id: int) -> list[Rsvp]:
        with self._lock:
            return [r for r in self._rsvps.values() if r.match_id == match_id]

    def list_rsvps_by_user(self, user_id: int) -> list[Rsvp]:
        with self._lock:
            return [r for r in self._rsvps.values() if r.user_id == user_id]

    def create_rsvp(self, match_id: int, user_id: int, status: str, joined_at: datetime) -> Rsvp:
        with self._lock:
            if self.get_rsvp(match_id, user_id) is not None:
                raise AlreadyJoined(match_id, user_id)
            rsvp = Rsvp(id=self._next_id("rsvp"), match_id=match_id, user_id=user_id,
                        status=status, joined_at=joined_at)
            self._rsvps[rsvp.id] = rsvp
            return rsvp

    def update_rsvp_status(self, rsvp_id: int, status: str) -> Optional[Rsvp]:
        with self._lock:
            rsvp = self._rsvps.get(rsvp_id)
            if rsvp is None:
                return None
            rsvp = rsvp.model_copy(update={"status": status})
            self._rsvps[rsvp_id] = rsvp
            return rsvp

    def delete_rsvp(self, rsvp_id: int) -> bool:
        with self._lock:
            return self._rsvps.pop(rsvp_id, None) is not None

    def count_confirmed(self, match_id: int) -> int:
        with self._lock:
            return sum(1 for r in self._rsvps.values() if r.match_id == match_id and r.status == RSVP_CONFIRMED)

    # ── Notifications ──

    def create_notification(self, user_id: int, match_id: int, kind: str, message: str,
                            scheduled_for: datetime) -> Notification:
        with self._lock:
            notification = Notification(
                id=self._next_id("notification"),
                user_id=user_id,
                match_id=match_id,
                kind=kind,
                message=message,
                scheduled_for=scheduled_for,
                created_at=datetime.now(timezone.utc),
            )
            self._notifications[notification.id] = notification
            return notification

    def list_notifications_by_user(self, user_id: int) -> list[Notification]:
        with self._lock:
            return [n for n in self._notifications.values() if n.user_id == user_id]

    def mark_notification_sent(self, notification_id: int) -> Optional[Notification]:
        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is None:
                return None
            if not notification.sent:
                notification = notification.model_copy(update={"sent": True})
                self._notifications[notification_id] = notification
            return notification
