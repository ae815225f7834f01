"""Sample data for a fresh store."""

from datetime import date

from constants import SAMPLE_USERS
from logger import get_logger

logger = get_logger(__name__)


def _first_slot(matches, slot):
    return next((m for m in matches if m.time_slot == slot), None)


def seed_sample_data(services, today: date) -> bool:
    """Seed users, this week's slots and a few RSVPs. No-op if users exist."""
    if services.identity.list_users():
        logger.debug("Store already has users, skipping seed")
        return False

    users = [services.identity.resolve_user(name, team) for name, team in SAMPLE_USERS]
    matches = services.schedule.ensure_weekly_slots(today)

    # Two players at lunch, three in the morning, and one evening match filled up
    plan = [
        ("lunch", users[0:2]),
        ("morning", users[2:5]),
    ]
    evening = _first_slot(matches, "evening")
    if evening is not None:
        plan.append(("evening", users[5:5 + evening.capacity]))

    for slot, players in plan:
        match = _first_slot(matches, slot)
        if match is None:
            continue
        for user in players:
            services.roster.join(match.id, user.id)

    logger.info("Sample data seeded: users=%d, matches=%d", len(users), len(matches))
    return True
