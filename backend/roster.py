"""
Roster engine: join, leave and waitlist promotion for a single match.

A (match, user) pair is absent, confirmed or waitlisted. Calls touching the
same match are serialized by a per-match lock and run inside one storage
transaction, so the admit-or-waitlist decision always sees a settled
confirmed count and a failed call leaves nothing behind.
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from pydantic import BaseModel

from constants import (
    MATCH_STATUS_CANCELLED, MATCH_STATUS_FULL, MATCH_STATUS_OPEN, RSVP_CONFIRMED, RSVP_WAITLISTED
)
from errors import AlreadyJoined, MatchCancelled, MatchNotFound, NotJoined, UserNotFound
from logger import get_logger
from models import Match, Rsvp
from storage import Storage

logger = get_logger(__name__)


class LeaveResult(BaseModel):
    removed: Rsvp
    promoted: list[Rsvp]


class Roster(BaseModel):
    match: Match
    confirmed: list[Rsvp]
    waitlisted: list[Rsvp]


def waitlist_order(rsvp: Rsvp):
    return (rsvp.joined_at, rsvp.id)


def derive_status(match: Match, confirmed: int) -> str:
    if match.status == MATCH_STATUS_CANCELLED:
        return MATCH_STATUS_CANCELLED
    return MATCH_STATUS_FULL if confirmed >= match.capacity else MATCH_STATUS_OPEN


class RosterEngine:
    def __init__(self, storage: Storage, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._storage = storage
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _match_lock(self, match_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(match_id)
            if lock is None:
                lock = self._locks[match_id] = threading.Lock()
            return lock

    def _drop_lock(self, match_id: int, lock: Optional[threading.Lock] = None) -> None:
        with self._locks_guard:
            if lock is None or self._locks.get(match_id) is lock:
                self._locks.pop(match_id, None)

    def forget(self, match_id: int) -> None:
        """Release the lock held for a match that no longer exists."""
        self._drop_lock(match_id)

    @contextmanager
    def _locked_match(self, match_id: int) -> Iterator[Match]:
        lock = self._match_lock(match_id)
        with lock:
            with self._storage.transaction():
                match = self._storage.get_match(match_id, for_update=True)
                if match is None:
                    self._drop_lock(match_id, lock)
                    raise MatchNotFound(match_id)
                yield match

    def _sync_status(self, match: Match) -> Match:
        status = derive_status(match, self._storage.count_confirmed(match.id))
        if status == match.status:
            return match
        logger.info("Match status changed: match=%d, %s -> %s", match.id, match.status, status)
        return self._storage.update_match_status(match.id, status)

    def _promote_waitlist(self, match: Match) -> list[Rsvp]:
        free = match.capacity - self._storage.count_confirmed(match.id)
        if free <= 0:
            return []
        waitlisted = sorted(
            (r for r in self._storage.list_rsvps_by_match(match.id) if r.status == RSVP_WAITLISTED),
            key=waitlist_order,
        )
        promoted = []
        for rsvp in waitlisted[:free]:
            promoted.append(self._storage.update_rsvp_status(rsvp.id, RSVP_CONFIRMED))
            logger.info("Promoted from waitlist: match=%d, user=%d", match.id, rsvp.user_id)
        return promoted

    # ── Commands ──

    def join(self, match_id: int, user_id: int) -> Rsvp:
        """Add a player, confirmed while there is room and waitlisted after."""
        with self._locked_match(match_id) as match:
            if match.status == MATCH_STATUS_CANCELLED:
                raise MatchCancelled(match_id)
            if self._storage.get_user(user_id) is None:
                raise UserNotFound(user_id)
            if self._storage.get_rsvp(match_id, user_id) is not None:
                raise AlreadyJoined(match_id, user_id)

            confirmed = self._storage.count_confirmed(match_id)
            status = RSVP_CONFIRMED if confirmed < match.capacity else RSVP_WAITLISTED
            rsvp = self._storage.create_rsvp(match_id, user_id, status, self._clock())
            self._sync_status(match)

        logger.info("Player joined: match=%d, user=%d, status=%s", match_id, user_id, status)
        return rsvp

    def leave(self, match_id: int, user_id: int) -> LeaveResult:
        """Remove a player; a freed confirmed seat goes to the longest waiter."""
        with self._locked_match(match_id) as match:
            rsvp = self._storage.get_rsvp(match_id, user_id)
            if rsvp is None:
                raise NotJoined(match_id, user_id)

            self._storage.delete_rsvp(rsvp.id)
            promoted = []
            if rsvp.status == RSVP_CONFIRMED and match.status != MATCH_STATUS_CANCELLED:
                promoted = self._promote_waitlist(match)
            self._sync_status(match)

        logger.info("Player left: match=%d, user=%d, was=%s", match_id, user_id, rsvp.status)
        return LeaveResult(removed=rsvp, promoted=promoted)

    def promote(self, match_id: int) -> list[Rsvp]:
        """Fill every free confirmed seat from the waitlist, oldest first."""
        with self._locked_match(match_id) as match:
            if match.status == MATCH_STATUS_CANCELLED:
                return []
            promoted = self._promote_waitlist(match)
            self._sync_status(match)
        return promoted

    # ── Queries ──

    def roster(self, match_id: int) -> Roster:
        match = self._storage.get_match(match_id)
        if match is None:
            raise MatchNotFound(match_id)
        rsvps = sorted(self._storage.list_rsvps_by_match(match_id), key=waitlist_order)
        return Roster(
            match=match,
            confirmed=[r for r in rsvps if r.status == RSVP_CONFIRMED],
            waitlisted=[r for r in rsvps if r.status == RSVP_WAITLISTED],
        )
