"""
Notification records: reminders scheduled for a player about a match.

Only the records live here; delivering them is somebody else's job.
"""

from datetime import datetime, timezone

from constants import NOTIFICATION_KINDS, NOTIFICATION_MESSAGE_MAX_LENGTH
from errors import MatchNotFound, NotificationNotFound, UserNotFound, ValidationError
from logger import get_logger
from models import Notification
from storage import Storage

logger = get_logger(__name__)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with stored ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class NotificationRecorder:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def schedule(self, user_id: int, match_id: int, kind: str, message: str,
                 scheduled_for: datetime) -> Notification:
        if kind not in NOTIFICATION_KINDS:
            raise ValidationError("kind", f"Kind must be one of {', '.join(NOTIFICATION_KINDS)}")
        message = (message or "").strip()
        if not message or len(message) > NOTIFICATION_MESSAGE_MAX_LENGTH:
            raise ValidationError(
                "message", f"Message must be between 1 and {NOTIFICATION_MESSAGE_MAX_LENGTH} characters"
            )
        if self._storage.get_user(user_id) is None:
            raise UserNotFound(user_id)
        if self._storage.get_match(match_id) is None:
            raise MatchNotFound(match_id)

        notification = self._storage.create_notification(
            user_id=user_id,
            match_id=match_id,
            kind=kind,
            message=message,
            scheduled_for=as_utc(scheduled_for),
        )
        logger.info("Notification scheduled: id=%d, user=%d, kind=%s", notification.id, user_id, kind)
        return notification

    def list_pending(self, user_id: int, now: datetime) -> list[Notification]:
        """Unsent notifications still in the future, soonest first."""
        now = as_utc(now)
        pending = [
            n for n in self._storage.list_notifications_by_user(user_id)
            if not n.sent and as_utc(n.scheduled_for) > now
        ]
        return sorted(pending, key=lambda n: (as_utc(n.scheduled_for), n.id))

    def mark_sent(self, notification_id: int) -> Notification:
        notification = self._storage.mark_notification_sent(notification_id)
        if notification is None:
            raise NotificationNotFound(notification_id)
        logger.info("Notification marked sent: id=%d", notification_id)
        return notification
