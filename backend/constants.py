# backend/constants.py
"""Application constants - single source of truth for fixed values."""

MATCH_STATUS_OPEN = "open"
MATCH_STATUS_FULL = "full"
MATCH_STATUS_CANCELLED = "cancelled"

RSVP_CONFIRMED = "confirmed"
RSVP_WAITLISTED = "waitlisted"

MATCH_TYPES = ["2v2", "4v4", "Open"]
MATCH_TYPE_DEFAULT = "Open"

# Capacity 0 is allowed: the match is full from the start and everyone waitlists
MATCH_CAPACITY_MIN = 0
MATCH_CAPACITY_MAX = 24

NOTIFICATION_KINDS = ["reminder", "final_call", "cancelled"]
NOTIFICATION_MESSAGE_MAX_LENGTH = 280

PLAYER_NAME_MIN_LENGTH = 2
PLAYER_NAME_MAX_LENGTH = 50
TEAM_MAX_LENGTH = 50
DEFAULT_TEAM = "Team"
AVATAR_MAX_INITIALS = 2

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
WEEKEND = {5, 6}  # date.weekday() values for saturday and sunday

LEADERBOARD_PERIODS = ["week", "month"]
LEADERBOARD_TRAILING_DAYS = 30

# Sample roster for a fresh store: (name, team)
SAMPLE_USERS = [
    ("John Doe", "Engineering"),
    ("Alex Martinez", "Engineering"),
    ("Sarah Kim", "Design"),
    ("Jordan Lee", "Marketing"),
    ("Mike Rodriguez", "Sales"),
    ("Diana Kim", "Product"),
    ("Lisa Martinez", "HR"),
    ("Tom Riley", "Engineering"),
    ("Rachel Wong", "Design"),
    ("James Smith", "Engineering"),
    ("Kate Parker", "Marketing"),
]
