"""
Schedule provider: the set of matches the roster engine works on.

Weekday matches are generated per configured time slot; ad-hoc matches can
also be created with an explicit time.
"""

from datetime import date, timedelta
from typing import Optional

from config import DEFAULT_CAPACITY, MATCH_TIME_SLOTS, SLOT_WINDOW_DAYS
from constants import (
    MATCH_CAPACITY_MAX, MATCH_CAPACITY_MIN, MATCH_STATUS_CANCELLED, MATCH_STATUS_FULL, MATCH_STATUS_OPEN,
    MATCH_TYPE_DEFAULT, MATCH_TYPES, WEEKDAYS, WEEKEND
)
from errors import MatchNotFound, SlotTaken, UserNotFound, ValidationError
from logger import get_logger
from models import Match
from roster import RosterEngine
from stats import week_bounds
from storage import Storage

logger = get_logger(__name__)


class ScheduleProvider:
    def __init__(self, storage: Storage, time_slots: Optional[list[str]] = None,
                 default_capacity: int = DEFAULT_CAPACITY, roster: Optional[RosterEngine] = None) -> None:
        self._storage = storage
        self._roster = roster
        self.time_slots = list(time_slots or MATCH_TIME_SLOTS)
        self.default_capacity = default_capacity

    def _slot_rank(self, match: Match) -> int:
        if match.time_slot in self.time_slots:
            return self.time_slots.index(match.time_slot)
        return len(self.time_slots)

    def create_match(
        self,
        match_date: date,
        time_slot: Optional[str] = None,
        time: Optional[str] = None,
        match_type: str = MATCH_TYPE_DEFAULT,
        capacity: Optional[int] = None,
        is_recurring: bool = False,
        recurring_day: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> Match:
        """Create one match. Raises ValidationError or SlotTaken."""
        if capacity is None:
            capacity = self.default_capacity
        if not MATCH_CAPACITY_MIN <= capacity <= MATCH_CAPACITY_MAX:
            raise ValidationError(
                "capacity", f"Capacity must be between {MATCH_CAPACITY_MIN} and {MATCH_CAPACITY_MAX}"
            )
        if not time_slot and not time:
            raise ValidationError("time_slot", "Either a time slot or an explicit time is required")
        if match_type not in MATCH_TYPES:
            raise ValidationError("match_type", f"Match type must be one of {', '.join(MATCH_TYPES)}")
        if recurring_day is not None and recurring_day not in WEEKDAYS:
            raise ValidationError("recurring_day", f"Invalid day '{recurring_day}'")
        if created_by is not None and self._storage.get_user(created_by) is None:
            raise UserNotFound(created_by)

        match = self._storage.create_match(
            match_date=match_date,
            time_slot=time_slot,
            time=time,
            match_type=match_type,
            capacity=capacity,
            status=MATCH_STATUS_FULL if capacity == 0 else MATCH_STATUS_OPEN,
            is_recurring=is_recurring,
            recurring_day=recurring_day,
            created_by=created_by,
        )
        logger.info("Match created: id=%d, date=%s, slot=%s", match.id, match_date, time_slot or time)
        return match

    def get_match(self, match_id: int) -> Match:
        match = self._storage.get_match(match_id)
        if match is None:
            raise MatchNotFound(match_id)
        return match

    def matches_in_range(self, start: date, end: date) -> list[Match]:
        if start > end:
            raise ValidationError("start", "Start date must not be after end date")
        matches = self._storage.list_matches(start, end)
        return sorted(matches, key=lambda m: (m.match_date, self._slot_rank(m), m.id))

    def week_matches(self, base_date: date) -> list[Match]:
        return self.matches_in_range(*week_bounds(base_date))

    def ensure_weekly_slots(self, base_date: date, days: int = SLOT_WINDOW_DAYS) -> list[Match]:
        """Create the missing weekday slot matches for ``days`` days from ``base_date``.

        Safe to call repeatedly; returns only the matches it created.
        """
        created = []
        for offset in range(days):
            day = base_date + timedelta(days=offset)
            if day.weekday() in WEEKEND:
                continue
            for slot in self.time_slots:
                with self._storage.transaction():
                    if self._storage.get_match_by_slot(day, slot) is not None:
                        continue
                    try:
                        created.append(self.create_match(match_date=day, time_slot=slot))
                    except SlotTaken:
                        # created concurrently by another worker
                        logger.debug("Slot already taken: date=%s, slot=%s", day, slot)
        logger.info("Weekly slots ensured: base=%s, created=%d", base_date, len(created))
        return created

    def cancel_match(self, match_id: int) -> Match:
        with self._storage.transaction():
            match = self._storage.get_match(match_id, for_update=True)
            if match is None:
                raise MatchNotFound(match_id)
            if match.status != MATCH_STATUS_CANCELLED:
                match = self._storage.update_match_status(match_id, MATCH_STATUS_CANCELLED)
                logger.info("Match cancelled: id=%d", match_id)
        return match

    def delete_match(self, match_id: int) -> None:
        if not self._storage.delete_match(match_id):
            raise MatchNotFound(match_id)
        if self._roster is not None:
            self._roster.forget(match_id)
        logger.info("Match deleted: id=%d", match_id)
