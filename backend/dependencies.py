"""
Dependency wiring - pick the storage once and hand it to every service.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional

from fastapi import Request

from config import DATABASE_URL, STORAGE_BACKEND
from identity import IdentityResolver
from notifications import NotificationRecorder
from roster import RosterEngine
from schedule import ScheduleProvider
from stats import StatsAggregator
from storage import MemoryStorage, Storage


def build_storage(backend: Optional[str] = None, database_url: Optional[str] = None) -> Storage:
    backend = (backend or STORAGE_BACKEND).lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "postgres":
        from pg_storage import PostgresStorage
        return PostgresStorage(database_url or DATABASE_URL)
    raise ValueError(f"Unknown storage backend '{backend}'. Use 'memory' or 'postgres'")


class Services:
    """Every service, sharing one storage."""

    def __init__(self, storage: Storage, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.storage = storage
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.identity = IdentityResolver(storage)
        self.roster = RosterEngine(storage, clock=self.clock)
        self.stats = StatsAggregator(storage)
        self.schedule = ScheduleProvider(storage, roster=self.roster)
        self.notifications = NotificationRecorder(storage)

    def today(self) -> date:
        return self.clock().date()


def get_services(request: Request) -> Services:
    return request.app.state.services
