"""
Participation statistics derived from the current roster.

Counts are recomputed from RSVPs on every call; nothing here writes.
"""

from datetime import date, timedelta

from constants import LEADERBOARD_TRAILING_DAYS, RSVP_CONFIRMED
from errors import UserNotFound, ValidationError
from models import PlayerStat, UserStats
from storage import Storage


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def leaderboard_window(period: str, today: date) -> tuple[date, date]:
    if period == "week":
        return week_bounds(today)
    return today - timedelta(days=LEADERBOARD_TRAILING_DAYS), today


class StatsAggregator:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def player_stats(self, start: date, end: date) -> list[PlayerStat]:
        if start > end:
            raise ValidationError("start", "Start date must not be after end date")

        # dict keeps first-appearance order (matches by id, then rsvps by id), and sorted() is stable
        tallies: dict[int, int] = {}
        for match in sorted(self._storage.list_matches(start, end), key=lambda m: m.id):
            for rsvp in sorted(self._storage.list_rsvps_by_match(match.id), key=lambda r: r.id):
                if rsvp.status == RSVP_CONFIRMED:
                    tallies[rsvp.user_id] = tallies.get(rsvp.user_id, 0) + 1

        results = []
        for user_id, game_count in tallies.items():
            user = self._storage.get_user(user_id)
            if user is None:
                continue
            results.append(PlayerStat(user_id=user_id, user=user, game_count=game_count))
        return sorted(results, key=lambda s: s.game_count, reverse=True)

    def leaderboard(self, period: str, today: date) -> list[PlayerStat]:
        start, end = leaderboard_window(period, today)
        return self.player_stats(start, end)

    def user_stats(self, user_id: int, today: date) -> UserStats:
        user = self._storage.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)

        confirmed = [r for r in self._storage.list_rsvps_by_user(user_id) if r.status == RSVP_CONFIRMED]
        start, end = week_bounds(today)
        this_week = {m.id for m in self._storage.list_matches(start, end)}
        return UserStats(
            user=user,
            this_week_games=sum(1 for r in confirmed if r.match_id in this_week),
            total_games=len(confirmed),
        )
