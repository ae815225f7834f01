import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
from config import get_db_config

@contextmanager
def get_db(database_url=None):
    """Get a database connection with automatic commit/rollback."""
    config = get_db_config(database_url)
    conn = psycopg2.connect(
        host=config["host"],
        port=config["port"],
        database=config["database"],
        user=config["user"],
        password=config["password"],
        cursor_factory=RealDictCursor
    )
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(database_url=None):
    """Initialize database schema."""
    with get_db(database_url) as conn:
        cursor = conn.cursor()

        # Users table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id SERIAL PRIMARY KEY,
                username TEXT NOT NULL,
                name TEXT NOT NULL UNIQUE,
                team TEXT,
                avatar TEXT NOT NULL
            )
        """)

        # Matches table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS matches (
                id SERIAL PRIMARY KEY,
                match_date DATE NOT NULL,
                time_slot TEXT,
                time TEXT,
                match_type TEXT NOT NULL DEFAULT 'Open',
                capacity INTEGER NOT NULL DEFAULT 4 CHECK(capacity >= 0),
                status TEXT NOT NULL DEFAULT 'open' CHECK(status IN ('open', 'full', 'cancelled')),
                is_recurring BOOLEAN NOT NULL DEFAULT FALSE,
                recurring_day TEXT,
                created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
                created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # One match per (date, slot); explicit-time matches are unconstrained
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS matches_date_slot_key
            ON matches (match_date, time_slot)
            WHERE time_slot IS NOT NULL
        """)

        # RSVPs table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS rsvps (
                id SERIAL PRIMARY KEY,
                match_id INTEGER NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                status TEXT NOT NULL CHECK(status IN ('confirmed', 'waitlisted')),
                joined_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(match_id, user_id)
            )
        """)

        # Notifications table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                id SERIAL PRIMARY KEY,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                match_id INTEGER NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
                kind TEXT NOT NULL CHECK(kind IN ('reminder', 'final_call', 'cancelled')),
                message TEXT NOT NULL,
                scheduled_for TIMESTAMPTZ NOT NULL,
                sent BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.commit()


if __name__ == "__main__":
    init_db()
    print("Database initialized successfully")
