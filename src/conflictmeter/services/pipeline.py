from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.orm import Session, sessionmaker

from conflictmeter.cache.gate import CacheEntry, CacheGate
from conflictmeter.cache.store import Clock, build_cache_store, utc_now
from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import IngestionFailed
from conflictmeter.llm.estimator import ExternalEstimator, build_estimator
from conflictmeter.news.headlines import fingerprint_headlines
from conflictmeter.news.ingest import ingest_headlines
from conflictmeter.news.models import Headline
from conflictmeter.news.sources import BaseFeedSource, build_feed_source
from conflictmeter.scoring.blend import blend_scores
from conflictmeter.scoring.heuristic import score_headlines
from conflictmeter.scoring.types import ScoreRecord, headline_payloads, sentinel_record

LOGGER = logging.getLogger(__name__)

CacheStatus = Literal["hit", "miss", "stale", "unavailable"]


@dataclass(slots=True)
class ScoreResponse:
    record: ScoreRecord
    status_code: int
    cache_status: CacheStatus


def cache_control_header(settings: Settings) -> str:
    return (
        f"public, max-age={settings.cache_ttl_seconds}, "
        f"stale-while-revalidate={settings.stale_while_revalidate_seconds}"
    )


class ScorePipeline:
    def __init__(
        self,
        settings: Settings,
        feed_source: BaseFeedSource,
        estimator: ExternalEstimator,
        gate: CacheGate,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self.feed_source = feed_source
        self.estimator = estimator
        self.gate = gate
        self.clock = clock

    async def get_score(self) -> ScoreResponse:
        """Serve the current score; never raises.

        Unchanged news inside the TTL is answered from cache. A feed outage
        falls back to the last cached record, then to the sentinel record.
        """
        try:
            headlines = await ingest_headlines(
                self.feed_source, self.settings.feed_urls, self.settings.max_headlines
            )
        except IngestionFailed as exc:
            LOGGER.warning("Headline ingestion failed: %s", exc)
            return await self._fallback()

        fingerprint = fingerprint_headlines(headlines)
        cached = await self.gate.lookup(fingerprint)
        if cached is not None:
            LOGGER.info("Cache hit for fingerprint %s", fingerprint[:12])
            return ScoreResponse(record=cached, status_code=200, cache_status="hit")

        record = await self.compute(headlines)
        await self.gate.write(CacheEntry(fingerprint=fingerprint, record=record, written_at=record.computed_at))
        return ScoreResponse(record=record, status_code=200, cache_status="miss")

    async def compute(self, headlines: Sequence[Headline]) -> ScoreRecord:
        estimate_task = asyncio.create_task(self.estimator.estimate(headlines))
        heuristic = score_headlines(headlines, self.settings)
        estimate = await estimate_task

        blended = blend_scores(heuristic, estimate, headlines, self.settings)
        LOGGER.info(
            "Score computed heuristic=%.2f external=%s final=%.2f headlines=%d",
            heuristic,
            estimate.score,
            blended.score,
            len(headlines),
        )
        return ScoreRecord(
            score=blended.score,
            summary=blended.summary,
            headlines=headline_payloads(headlines),
            heuristic_score=heuristic,
            external_score=estimate.score,
            computed_at=self.clock(),
        )

    async def _fallback(self) -> ScoreResponse:
        record = await self.gate.last_record()
        if record is not None:
            return ScoreResponse(record=record, status_code=200, cache_status="stale")
        LOGGER.error("No cached score available; returning sentinel record")
        return ScoreResponse(record=sentinel_record(self.clock()), status_code=500, cache_status="unavailable")


def build_pipeline(settings: Settings, session_factory: sessionmaker[Session] | None = None) -> ScorePipeline:
    store = build_cache_store(settings, session_factory)
    return ScorePipeline(
        settings=settings,
        feed_source=build_feed_source(settings),
        estimator=build_estimator(settings),
        gate=CacheGate(store, settings),
    )
