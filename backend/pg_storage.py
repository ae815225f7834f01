"""
PostgreSQL implementation of the storage contract (psycopg2).

Inside ``transaction()`` every call on the same thread shares one connection;
outside it each call opens and commits its own.
"""

import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

import psycopg2
import psycopg2.errors

from constants import RSVP_CONFIRMED
from database import get_db
from errors import AlreadyJoined, SlotTaken, StorageError
from logger import get_logger
from models import Match, Notification, Rsvp, User
from storage import Storage

logger = get_logger(__name__)

MATCH_COLUMNS = (
    "match_date", "time_slot", "time", "match_type", "capacity", "status",
    "is_recurring", "recurring_day", "created_by",
)


class PostgresStorage(Storage):
    name = "postgres"

    def __init__(self, database_url: Optional[str] = None) -> None:
        self._database_url = database_url
        self._local = threading.local()

    @contextmanager
    def _connect(self):
        try:
            with get_db(self._database_url) as conn:
                yield conn
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
            logger.error("Storage unavailable: %s", exc)
            raise StorageError("Storage backend unavailable") from exc

    @contextmanager
    def _cursor(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn.cursor()
            return
        with self._connect() as conn:
            yield conn.cursor()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "conn", None) is not None:
            yield
            return
        with self._connect() as conn:
            self._local.conn = conn
            try:
                yield
            finally:
                self._local.conn = None

    def _fetch_one(self, model, query, params=()):
        with self._cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
        return model(**dict(row)) if row else None

    def _fetch_all(self, model, query, params=()):
        with self._cursor() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [model(**dict(row)) for row in rows]

    # ============ USERS ============

    def get_user(self, user_id: int) -> Optional[User]:
        return self._fetch_one(User, "SELECT * FROM users WHERE id = %s", (user_id,))

    def get_user_by_name(self, name: str) -> Optional[User]:
        return self._fetch_one(User, "SELECT * FROM users WHERE name = %s", (name,))

    def create_user(self, username: str, name: str, team: Optional[str], avatar: str) -> User:
        # First writer wins when two requests create the same name
        return self._fetch_one(User, """
            INSERT INTO users (username, name, team, avatar)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name
            RETURNING *
        """, (username, name, team, avatar))

    def update_user_team(self, user_id: int, team: str) -> Optional[User]:
        return self._fetch_one(User, "UPDATE users SET team = %s WHERE id = %s RETURNING *", (team, user_id))

    def list_users(self) -> list[User]:
        return self._fetch_all(User, "SELECT * FROM users ORDER BY id")

    # ============ MATCHES ============

    def get_match(self, match_id: int, for_update: bool = False) -> Optional[Match]:
        query = "SELECT * FROM matches WHERE id = %s"
        if for_update:
            query += " FOR UPDATE"
        return self._fetch_one(Match, query, (match_id,))

    def get_match_by_slot(self, match_date: date, time_slot: str) -> Optional[Match]:
        return self._fetch_one(
            Match, "SELECT * FROM matches WHERE match_date = %s AND time_slot = %s", (match_date, time_slot)
        )

    def list_matches(self, start: date, end: date) -> list[Match]:
        return self._fetch_all(Match, """
            SELECT * FROM matches
            WHERE match_date >= %s AND match_date <= %s
            ORDER BY match_date, id
        """, (start, end))

    def create_match(self, **fields) -> Match:
        columns = [c for c in MATCH_COLUMNS if c in fields]
        placeholders = ", ".join(["%s"] * len(columns))
        query = f"INSERT INTO matches ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"
        try:
            return self._fetch_one(Match, query, tuple(fields[c] for c in columns))
        except psycopg2.errors.UniqueViolation as exc:
            raise SlotTaken(fields["match_date"], fields.get("time_slot")) from exc

    def update_match_status(self, match_id: int, status: str) -> Optional[Match]:
        return self._fetch_one(
            Match, "UPDATE matches SET status = %s WHERE id = %s RETURNING *", (status, match_id)
        )

    def delete_match(self, match_id: int) -> bool:
        # rsvps and notifications go with it (ON DELETE CASCADE)
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM matches WHERE id = %s", (match_id,))
            return cursor.rowcount > 0

    # ============ RSVPS ============

    def get_rsvp(self, match_id: int, user_id: int) -> Optional[Rsvp]:
        return self._fetch_one(
            Rsvp, "SELECT * FROM rsvps WHERE match_id = %s AND user_id = %s", (match_id, user_id)
        )

    def list_rsvps_by_match(self, match_id: int) -> list[Rsvp]:
        return self._fetch_all(Rsvp, "SELECT * FROM rsvps WHERE match_id = %s ORDER BY id", (match_id,))

    def list_rsvps_by_user(self, user_id: int) -> list[Rsvp]:
        return self._fetch_all(Rsvp, "SELECT * FROM rsvps WHERE user_id = %s ORDER BY id", (user_id,))

    def create_rsvp(self, match_id: int, user_id: int, status: str, joined_at: datetime) -> Rsvp:
        try:
            return self._fetch_one(Rsvp, """
                INSERT INTO rsvps (match_id, user_id, status, joined_at)
                VALUES (%s, %s, %s, %s)
                RETURNING *
            """, (match_id, user_id, status, joined_at))
        except psycopg2.errors.UniqueViolation as exc:
            raise AlreadyJoined(match_id, user_id) from exc

    def update_rsvp_status(self, rsvp_id: int, status: str) -> Optional[Rsvp]:
        return self._fetch_one(Rsvp, "UPDATE rsvps SET status = %s WHERE id = %s RETURNING *", (status, rsvp_id))

    def delete_rsvp(self, rsvp_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM rsvps WHERE id = %s", (rsvp_id,))
            return cursor.rowcount > 0

    def count_confirmed(self, match_id: int) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) AS c FROM rsvps WHERE match_id = %s AND status = %s",
                (match_id, RSVP_CONFIRMED),
            )
            return cursor.fetchone()["c"]

    # ============ NOTIFICATIONS ============

    def create_notification(self, user_id: int, match_id: int, kind: str, message: str,
                            scheduled_for: datetime) -> Notification:
        return self._fetch_one(Notification, """
            INSERT INTO notifications (user_id, match_id, kind, message, scheduled_for)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING *
        """, (user_id, match_id, kind, message, scheduled_for))

    def list_notifications_by_user(self, user_id: int) -> list[Notification]:
        return self._fetch_all(
            Notification, "SELECT * FROM notifications WHERE user_id = %s ORDER BY id", (user_id,)
        )

    def mark_notification_sent(self, notification_id: int) -> Optional[Notification]:
        return self._fetch_one(
            Notification, "UPDATE notifications SET sent = TRUE WHERE id = %s RETURNING *", (notification_id,)
        )
