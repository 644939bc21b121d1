from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import StoreUnavailable
from conflictmeter.db.init import init_db
from conflictmeter.db.models import CacheEntryRow
from conflictmeter.db.session import build_engine, build_session_factory

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class CacheStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise NotImplementedError


class InMemoryCacheStore(CacheStore):
    """Process-local store; entries vanish once their TTL has passed."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self.clock = clock
        self._data: dict[str, tuple[str, datetime]] = {}

    async def get(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self.clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self.clock() + timedelta(seconds=ttl_seconds))


class SqlCacheStore(CacheStore):
    """Key-value store on the ``cache_entries`` table.

    Session work runs in a worker thread, one operation at a time.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock = utc_now) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self._lock = threading.Lock()

    def _get_sync(self, key: str) -> str | None:
        with self._lock, self.session_factory() as session:
            row = session.get(CacheEntryRow, key)
            if row is None:
                return None
            if self.clock() >= _as_utc(row.expires_at):
                session.delete(row)
                session.commit()
                return None
            return row.value

    def _set_sync(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self.clock() + timedelta(seconds=ttl_seconds)
        with self._lock, self.session_factory() as session:
            session.merge(CacheEntryRow(key=key, value=value, expires_at=expires_at))
            session.commit()

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cache read failed for {key}: {exc}") from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await asyncio.to_thread(self._set_sync, key, value, ttl_seconds)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cache write failed for {key}: {exc}") from exc


def build_cache_store(settings: Settings, session_factory: sessionmaker[Session] | None = None) -> CacheStore:
    if settings.cache_backend == "memory":
        return InMemoryCacheStore()
    if settings.cache_backend == "sql":
        if session_factory is None:
            engine = build_engine(settings)
            init_db(engine)
            session_factory = build_session_factory(engine)
        return SqlCacheStore(session_factory)
    raise ValueError(f"Unsupported cache backend: {settings.cache_backend}")
