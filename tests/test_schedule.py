from datetime import date, timedelta

import pytest

from errors import MatchNotFound, SlotTaken, ValidationError
from schedule import ScheduleProvider

MONDAY = date(2026, 10, 19)
SATURDAY = date(2026, 10, 24)


class TestEnsureWeeklySlots:
    def test_creates_one_match_per_weekday_and_slot(self, services):
        created = services.schedule.ensure_weekly_slots(MONDAY)

        assert len(created) == 5 * 3
        assert {m.match_date for m in created} == {MONDAY + timedelta(days=i) for i in range(5)}
        assert {m.time_slot for m in created} == {"morning", "lunch", "evening"}
        assert all(m.capacity == 4 and m.status == "open" for m in created)

    def test_is_idempotent(self, services, storage):
        services.schedule.ensure_weekly_slots(MONDAY)
        again = services.schedule.ensure_weekly_slots(MONDAY)

        assert again == []
        matches = storage.list_matches(MONDAY, MONDAY + timedelta(days=6))
        pairs = [(m.match_date, m.time_slot) for m in matches]
        assert len(pairs) == len(set(pairs)) == 15

    def test_skips_weekends(self, services):
        created = services.schedule.ensure_weekly_slots(SATURDAY)

        assert created
        assert all(m.match_date.weekday() < 5 for m in created)
        assert min(m.match_date for m in created) == date(2026, 10, 26)

    def test_fills_only_missing_slots(self, services, make_match):
        make_match(match_date=MONDAY, time_slot="lunch", capacity=8)

        created = services.schedule.ensure_weekly_slots(MONDAY, days=1)

        assert [m.time_slot for m in created] == ["morning", "evening"]

    def test_custom_slots(self, storage):
        provider = ScheduleProvider(storage, time_slots=["dawn", "dusk"], default_capacity=6)
        created = provider.ensure_weekly_slots(MONDAY, days=2)

        assert [(m.match_date, m.time_slot) for m in created] == [
            (MONDAY, "dawn"), (MONDAY, "dusk"),
            (MONDAY + timedelta(days=1), "dawn"), (MONDAY + timedelta(days=1), "dusk"),
        ]
        assert {m.capacity for m in created} == {6}


class TestCreateMatch:
    def test_explicit_time(self, services):
        match = services.schedule.create_match(
            match_date=MONDAY, time="18:30", match_type="2v2", capacity=4, is_recurring=True, recurring_day="monday"
        )
        assert match.time == "18:30"
        assert match.time_slot is None
        assert match.match_type == "2v2"

    @pytest.mark.parametrize("capacity", [-1, 25])
    def test_capacity_out_of_range(self, services, capacity):
        with pytest.raises(ValidationError) as exc_info:
            services.schedule.create_match(match_date=MONDAY, time_slot="lunch", capacity=capacity)
        assert exc_info.value.field == "capacity"

    def test_needs_slot_or_time(self, services):
        with pytest.raises(ValidationError) as exc_info:
            services.schedule.create_match(match_date=MONDAY)
        assert exc_info.value.field == "time_slot"

    def test_bad_match_type(self, services):
        with pytest.raises(ValidationError):
            services.schedule.create_match(match_date=MONDAY, time_slot="lunch", match_type="6v6")

    def test_duplicate_slot(self, services, make_match):
        make_match(time_slot="lunch")
        with pytest.raises(SlotTaken):
            make_match(time_slot="lunch")


class TestQueries:
    def test_range_is_inclusive_and_ordered(self, services, make_match):
        evening = make_match(match_date=MONDAY, time_slot="evening")
        morning = make_match(match_date=MONDAY, time_slot="morning")
        friday = make_match(match_date=MONDAY + timedelta(days=4), time_slot="lunch")
        make_match(match_date=MONDAY + timedelta(days=5), time_slot="lunch")

        matches = services.schedule.matches_in_range(MONDAY, MONDAY + timedelta(days=4))

        assert [m.id for m in matches] == [morning.id, evening.id, friday.id]

    def test_week_matches(self, services, make_match):
        inside = make_match(match_date=MONDAY + timedelta(days=6))
        make_match(match_date=MONDAY + timedelta(days=7))

        assert [m.id for m in services.schedule.week_matches(MONDAY + timedelta(days=2))] == [inside.id]

    def test_get_unknown_match(self, services):
        with pytest.raises(MatchNotFound):
            services.schedule.get_match(3)


class TestCancelAndDelete:
    def test_cancel_is_one_way(self, services, make_match):
        match = make_match()
        assert services.schedule.cancel_match(match.id).status == "cancelled"
        assert services.schedule.cancel_match(match.id).status == "cancelled"

    def test_cancel_unknown(self, services):
        with pytest.raises(MatchNotFound):
            services.schedule.cancel_match(8)

    def test_delete_removes_rsvps_and_notifications(self, services, storage, make_match, make_user, clock):
        match = make_match()
        user = make_user("Ann Able")
        services.roster.join(match.id, user.id)
        services.notifications.schedule(user.id, match.id, "reminder", "Game soon", clock() + timedelta(hours=1))

        services.schedule.delete_match(match.id)

        assert storage.get_match(match.id) is None
        assert storage.list_rsvps_by_user(user.id) == []
        assert storage.list_notifications_by_user(user.id) == []
        with pytest.raises(MatchNotFound):
            services.schedule.delete_match(match.id)
