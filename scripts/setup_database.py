#!/usr/bin/env python3
"""
Create the PostgreSQL schema and seed sample data.

Usage:
    python scripts/setup_database.py

Requires DATABASE_URL to be set in .env file. Seeding is skipped when the
users table already has rows.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from config import DATABASE_URL
from database import init_db
from dependencies import Services, build_storage
from seed import seed_sample_data


def setup_database():
    if not DATABASE_URL:
        print("Error: DATABASE_URL is not set")
        sys.exit(1)

    print("Initializing database schema...")
    init_db(DATABASE_URL)

    services = Services(build_storage("postgres", DATABASE_URL))
    if seed_sample_data(services, services.today()):
        print(f"Seeded {len(services.identity.list_users())} users")
    else:
        print("Users already present, skipping sample data")

    print("\nDatabase setup completed!")


if __name__ == "__main__":
    setup_database()
