"""Error taxonomy shared by the services and the HTTP layer.

Only StorageError is worth retrying; every other kind needs different input.
"""


class SchedulerError(Exception):
    status_code = 500
    kind = "internal"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulerError):
    status_code = 400
    kind = "validation"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class NotFoundError(SchedulerError):
    status_code = 404
    kind = "not_found"


class MatchNotFound(NotFoundError):
    def __init__(self, match_id):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class UserNotFound(NotFoundError):
    def __init__(self, user_id):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class NotificationNotFound(NotFoundError):
    def __init__(self, notification_id):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class ConflictError(SchedulerError):
    status_code = 409
    kind = "conflict"


class AlreadyJoined(ConflictError):
    def __init__(self, match_id, user_id):
        super().__init__(f"User {user_id} already joined match {match_id}")
        self.match_id = match_id
        self.user_id = user_id


class NotJoined(ConflictError):
    def __init__(self, match_id, user_id):
        super().__init__(f"User {user_id} has not joined match {match_id}")
        self.match_id = match_id
        self.user_id = user_id


class MatchCancelled(ConflictError):
    def __init__(self, match_id):
        super().__init__(f"Match {match_id} is cancelled")
        self.match_id = match_id


class SlotTaken(ConflictError):
    def __init__(self, match_date, time_slot):
        super().__init__(f"Slot '{time_slot}' on {match_date} already has a match")
        self.match_date = match_date
        self.time_slot = time_slot


class StorageError(SchedulerError):
    status_code = 503
    kind = "storage"
    retryable = True
