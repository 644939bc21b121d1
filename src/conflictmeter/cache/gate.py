from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError

from conflictmeter.cache.store import CacheStore, Clock, utc_now
from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import StoreUnavailable
from conflictmeter.scoring.types import ScoreRecord

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheEntry:
    fingerprint: str
    record: ScoreRecord
    written_at: datetime


def _to_millis(value: datetime) -> str:
    return str(int(value.timestamp() * 1000))


def _from_millis(value: str) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


class CacheGate:
    """Change detection in front of the scoring stages.

    The score slot is three keys (fingerprint, record, write time) that are
    always read together and written together.
    """

    def __init__(self, store: CacheStore, settings: Settings, clock: Clock = utc_now) -> None:
        self.store = store
        self.clock = clock
        self.ttl = timedelta(seconds=settings.cache_ttl_seconds)
        self.retention_seconds = max(settings.cache_retention_seconds, settings.cache_ttl_seconds)
        prefix = settings.cache_key_prefix
        self.hash_key = f"{prefix}:hash"
        self.score_key = f"{prefix}:score"
        self.timestamp_key = f"{prefix}:timestamp"

    async def read_entry(self) -> CacheEntry | None:
        try:
            fingerprint, record_json, timestamp = await asyncio.gather(
                self.store.get(self.hash_key),
                self.store.get(self.score_key),
                self.store.get(self.timestamp_key),
            )
        except StoreUnavailable as exc:
            LOGGER.warning("Cache read failed, treating as miss: %s", exc)
            return None

        if fingerprint is None or record_json is None or timestamp is None:
            return None

        try:
            record = ScoreRecord.model_validate_json(record_json)
            written_at = _from_millis(timestamp)
        except (ValidationError, ValueError, OverflowError, OSError) as exc:
            LOGGER.warning("Discarding undecodable cache entry: %s", exc)
            return None
        return CacheEntry(fingerprint=fingerprint, record=record, written_at=written_at)

    async def lookup(self, fingerprint: str) -> ScoreRecord | None:
        """Return the cached record only for unchanged news inside the TTL."""
        entry = await self.read_entry()
        if entry is None or entry.fingerprint != fingerprint:
            return None
        if self.clock() - entry.written_at >= self.ttl:
            return None
        return entry.record

    async def last_record(self) -> ScoreRecord | None:
        """Return the most recent record regardless of fingerprint or age."""
        try:
            raw = await self.store.get(self.score_key)
        except StoreUnavailable as exc:
            LOGGER.warning("Cache read failed during fallback: %s", exc)
            return None
        if raw is None:
            return None
        try:
            record = ScoreRecord.model_validate_json(raw)
        except ValidationError as exc:
            LOGGER.warning("Discarding undecodable cached record: %s", exc)
            return None
        return None if record.is_sentinel else record

    async def write(self, entry: CacheEntry) -> bool:
        if entry.record.is_sentinel:
            raise ValueError("The sentinel failure record is never cached")

        try:
            await asyncio.gather(
                self.store.set(self.score_key, entry.record.to_json(), self.retention_seconds),
                self.store.set(self.hash_key, entry.fingerprint, self.retention_seconds),
                self.store.set(self.timestamp_key, _to_millis(entry.written_at), self.retention_seconds),
            )
        except StoreUnavailable as exc:
            LOGGER.warning("Cache write failed, continuing without cache: %s", exc)
            return False
        return True
