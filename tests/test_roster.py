import random
import threading
from datetime import date

import pytest

from constants import RSVP_CONFIRMED, RSVP_WAITLISTED
from errors import AlreadyJoined, MatchCancelled, MatchNotFound, NotJoined, UserNotFound

MONDAY = date(2026, 10, 19)


def statuses(storage, match_id):
    return {r.user_id: r.status for r in storage.list_rsvps_by_match(match_id)}


class TestJoin:
    def test_join_confirms_while_there_is_room(self, services, make_match, make_user):
        match = make_match(capacity=2)
        alice = make_user("Alice Adams")

        rsvp = services.roster.join(match.id, alice.id)

        assert rsvp.status == RSVP_CONFIRMED
        assert rsvp.match_id == match.id
        assert services.storage.get_match(match.id).status == "open"

    def test_join_waitlists_when_full(self, services, make_match, make_user):
        match = make_match(capacity=1)
        alice, bob = make_user("Alice Adams"), make_user("Bob Brown")

        services.roster.join(match.id, alice.id)
        rsvp = services.roster.join(match.id, bob.id)

        assert rsvp.status == RSVP_WAITLISTED
        assert services.storage.count_confirmed(match.id) == 1

    def test_match_becomes_full_at_capacity(self, services, make_match, make_user):
        match = make_match(capacity=2)
        services.roster.join(match.id, make_user("Alice Adams").id)
        assert services.storage.get_match(match.id).status == "open"

        services.roster.join(match.id, make_user("Bob Brown").id)
        assert services.storage.get_match(match.id).status == "full"

    def test_second_join_fails_with_already_joined(self, services, make_match, make_user):
        match = make_match(capacity=1)
        alice, bob = make_user("Alice Adams"), make_user("Bob Brown")
        services.roster.join(match.id, alice.id)
        services.roster.join(match.id, bob.id)

        with pytest.raises(AlreadyJoined):
            services.roster.join(match.id, alice.id)
        with pytest.raises(AlreadyJoined):
            services.roster.join(match.id, bob.id)
        assert len(services.storage.list_rsvps_by_match(match.id)) == 2

    def test_unknown_match(self, services, make_user):
        with pytest.raises(MatchNotFound):
            services.roster.join(999, make_user("Alice Adams").id)

    def test_unknown_user(self, services, make_match):
        match = make_match()
        with pytest.raises(UserNotFound):
            services.roster.join(match.id, 42)

    def test_deleted_match_reports_not_found(self, services, make_match, make_user):
        match = make_match()
        alice = make_user("Alice Adams")
        services.roster.join(match.id, alice.id)
        services.schedule.delete_match(match.id)

        with pytest.raises(MatchNotFound):
            services.roster.join(match.id, make_user("Bob Brown").id)
        with pytest.raises(MatchNotFound):
            services.roster.leave(match.id, alice.id)

    def test_cancelled_match_refuses_joins(self, services, make_match, make_user):
        match = make_match()
        services.schedule.cancel_match(match.id)

        with pytest.raises(MatchCancelled):
            services.roster.join(match.id, make_user("Alice Adams").id)
        assert services.storage.list_rsvps_by_match(match.id) == []

    def test_zero_capacity_waitlists_everyone(self, services, make_match, make_user):
        match = make_match(capacity=0)
        assert match.status == "full"

        rsvp = services.roster.join(match.id, make_user("Alice Adams").id)

        assert rsvp.status == RSVP_WAITLISTED
        assert services.storage.get_match(match.id).status == "full"


class TestLeave:
    def test_fifo_promotion(self, services, make_match, make_user, clock):
        match = make_match(capacity=2)
        a, b, c, d = (make_user(n) for n in ("Ann Able", "Ben Baker", "Cat Cole", "Dan Dunn"))
        for user in (a, b, c, d):
            services.roster.join(match.id, user.id)
            clock.advance(minutes=1)

        result = services.roster.leave(match.id, a.id)

        assert [r.user_id for r in result.promoted] == [c.id]
        assert result.removed.user_id == a.id
        assert statuses(services.storage, match.id) == {
            b.id: RSVP_CONFIRMED,
            c.id: RSVP_CONFIRMED,
            d.id: RSVP_WAITLISTED,
        }
        assert services.storage.get_match(match.id).status == "full"

    def test_promotion_keeps_join_time(self, services, make_match, make_user, clock):
        match = make_match(capacity=1)
        a, b = make_user("Ann Able"), make_user("Ben Baker")
        services.roster.join(match.id, a.id)
        clock.advance(minutes=5)
        waiting = services.roster.join(match.id, b.id)
        clock.advance(minutes=5)

        promoted = services.roster.leave(match.id, a.id).promoted[0]

        assert promoted.id == waiting.id
        assert promoted.joined_at == waiting.joined_at

    def test_equal_join_times_promote_lowest_id(self, services, make_match, make_user):
        match = make_match(capacity=1)
        a, b, c = make_user("Ann Able"), make_user("Ben Baker"), make_user("Cat Cole")
        services.roster.join(match.id, a.id)
        first = services.roster.join(match.id, b.id)
        services.roster.join(match.id, c.id)

        result = services.roster.leave(match.id, a.id)

        assert [r.id for r in result.promoted] == [first.id]

    def test_waitlisted_leave_promotes_nobody(self, services, make_match, make_user):
        match = make_match(capacity=1)
        a, b, c = make_user("Ann Able"), make_user("Ben Baker"), make_user("Cat Cole")
        for user in (a, b, c):
            services.roster.join(match.id, user.id)

        result = services.roster.leave(match.id, b.id)

        assert result.promoted == []
        assert statuses(services.storage, match.id) == {a.id: RSVP_CONFIRMED, c.id: RSVP_WAITLISTED}

    def test_status_goes_back_to_open(self, services, make_match, make_user):
        match = make_match(capacity=1)
        alice = make_user("Alice Adams")

        services.roster.join(match.id, alice.id)
        assert services.storage.get_match(match.id).status == "full"

        services.roster.leave(match.id, alice.id)
        assert services.storage.get_match(match.id).status == "open"

    def test_leave_without_join(self, services, make_match, make_user):
        match = make_match(capacity=1)
        alice, bob = make_user("Alice Adams"), make_user("Bob Brown")
        services.roster.join(match.id, alice.id)
        before = (services.storage.list_rsvps_by_match(match.id), services.storage.get_match(match.id))

        with pytest.raises(NotJoined):
            services.roster.leave(match.id, bob.id)

        after = (services.storage.list_rsvps_by_match(match.id), services.storage.get_match(match.id))
        assert after == before

    def test_leave_cancelled_match_keeps_status(self, services, make_match, make_user):
        match = make_match(capacity=1)
        a, b = make_user("Ann Able"), make_user("Ben Baker")
        services.roster.join(match.id, a.id)
        services.roster.join(match.id, b.id)
        services.schedule.cancel_match(match.id)

        result = services.roster.leave(match.id, a.id)

        assert result.promoted == []
        assert services.storage.get_match(match.id).status == "cancelled"

    def test_failed_leave_changes_nothing(self, services, storage, make_match, make_user, monkeypatch):
        match = make_match(capacity=1)
        a, b = make_user("Ann Able"), make_user("Ben Baker")
        services.roster.join(match.id, a.id)
        services.roster.join(match.id, b.id)

        def broken(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(storage, "update_rsvp_status", broken)
        with pytest.raises(RuntimeError):
            services.roster.leave(match.id, a.id)

        assert statuses(storage, match.id) == {a.id: RSVP_CONFIRMED, b.id: RSVP_WAITLISTED}
        assert storage.get_match(match.id).status == "full"


class TestPromote:
    def test_fills_every_free_seat_in_order(self, services, storage, make_match, make_user, clock):
        match = make_match(capacity=2)
        users = [make_user(n) for n in ("Ann Able", "Ben Baker", "Cat Cole")]
        for user in users:
            storage.create_rsvp(match.id, user.id, RSVP_WAITLISTED, clock())
            clock.advance(seconds=1)

        promoted = services.roster.promote(match.id)

        assert [r.user_id for r in promoted] == [users[0].id, users[1].id]
        assert storage.count_confirmed(match.id) == 2
        assert storage.get_match(match.id).status == "full"

    def test_empty_waitlist(self, services, make_match):
        match = make_match()
        assert services.roster.promote(match.id) == []

    def test_no_free_seat(self, services, make_match, make_user):
        match = make_match(capacity=1)
        services.roster.join(match.id, make_user("Ann Able").id)
        services.roster.join(match.id, make_user("Ben Baker").id)

        assert services.roster.promote(match.id) == []


class TestRosterView:
    def test_roster_orders_by_join_time(self, services, make_match, make_user, clock):
        match = make_match(capacity=1)
        a, b, c = make_user("Ann Able"), make_user("Ben Baker"), make_user("Cat Cole")
        for user in (a, b, c):
            services.roster.join(match.id, user.id)
            clock.advance(seconds=30)

        roster = services.roster.roster(match.id)

        assert [r.user_id for r in roster.confirmed] == [a.id]
        assert [r.user_id for r in roster.waitlisted] == [b.id, c.id]

    def test_unknown_match(self, services):
        with pytest.raises(MatchNotFound):
            services.roster.roster(12)


class TestMatchLocks:
    def test_missing_matches_leave_no_locks_behind(self, services, make_user):
        alice = make_user("Alice Adams")
        for match_id in range(1000, 2000):
            with pytest.raises(MatchNotFound):
                services.roster.leave(match_id, alice.id)
        with pytest.raises(MatchNotFound):
            services.roster.join(5000, alice.id)

        assert services.roster._locks == {}

    def test_deleting_a_match_drops_its_lock(self, services, make_match, make_user):
        match = make_match()
        services.roster.join(match.id, make_user("Alice Adams").id)
        assert match.id in services.roster._locks

        services.schedule.delete_match(match.id)

        assert match.id not in services.roster._locks

    def test_live_matches_keep_their_lock(self, services, make_match, make_user):
        match = make_match()
        alice = make_user("Alice Adams")
        services.roster.join(match.id, alice.id)
        lock = services.roster._locks[match.id]

        services.roster.leave(match.id, alice.id)

        assert services.roster._locks[match.id] is lock


class TestInvariants:
    def test_capacity_never_exceeded(self, services, storage, make_match, make_user, clock):
        capacity = 3
        match = make_match(capacity=capacity)
        users = [make_user(f"Player {i}") for i in range(8)]
        rng = random.Random(7)

        for _ in range(300):
            user = rng.choice(users)
            clock.advance(seconds=1)
            try:
                if rng.random() < 0.55:
                    services.roster.join(match.id, user.id)
                else:
                    services.roster.leave(match.id, user.id)
            except (AlreadyJoined, NotJoined):
                pass

            confirmed = storage.count_confirmed(match.id)
            waiting = len(storage.list_rsvps_by_match(match.id)) - confirmed
            assert confirmed <= capacity
            assert (storage.get_match(match.id).status == "full") == (confirmed == capacity)
            if waiting:
                assert confirmed == capacity

    def test_concurrent_joins_admit_one(self, services, storage, make_match, make_user):
        match = make_match(capacity=1)
        users = [make_user(f"Racer {i}") for i in range(10)]
        barrier = threading.Barrier(len(users))
        errors = []

        def worker(user_id):
            barrier.wait()
            try:
                services.roster.join(match.id, user_id)
            except Exception as exc:  # collected for the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(u.id,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert storage.count_confirmed(match.id) == 1
        assert len(storage.list_rsvps_by_match(match.id)) == 10
