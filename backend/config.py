import os
from pathlib import Path
from urllib.parse import urlparse
from dotenv import load_dotenv

# Load .env file from project root
ENV_PATH = Path(__file__).parent.parent / ".env"
load_dotenv(ENV_PATH)

# Server settings
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Database - parse DATABASE_URL for PostgreSQL
DATABASE_URL = os.getenv("DATABASE_URL", "")

# Storage backend is picked once at startup: "memory" or "postgres"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "postgres" if DATABASE_URL else "memory").lower()
SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "true").lower() == "true"

# Scheduling
MATCH_TIME_SLOTS = [s.strip() for s in os.getenv("MATCH_TIME_SLOTS", "morning,lunch,evening").split(",") if s.strip()]
DEFAULT_CAPACITY = int(os.getenv("DEFAULT_CAPACITY", "4"))
SLOT_WINDOW_DAYS = int(os.getenv("SLOT_WINDOW_DAYS", "7"))


def get_db_config(database_url=None):
    """Parse DATABASE_URL into connection parameters."""
    url = database_url or DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    parsed = urlparse(url)
    return {
        "host": parsed.hostname,
        "port": parsed.port or 5432,
        "database": parsed.path[1:],  # Remove leading /
        "user": parsed.username,
        "password": parsed.password,
    }

# CORS
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
