from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from conflictmeter.cache.gate import CacheGate
from conflictmeter.cache.store import InMemoryCacheStore
from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import SourceUnavailable, StoreUnavailable
from conflictmeter.llm.types import ExternalEstimate
from conflictmeter.news.models import Headline
from conflictmeter.scoring.heuristic import score_headlines
from conflictmeter.services.pipeline import ScorePipeline, cache_control_header

FEEDS = ["https://feeds.example/world", "https://feeds.example/ukraine"]


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeFeedSource:
    def __init__(self) -> None:
        self.failing = False
        self.feeds: dict[str, list[Headline]] = {
            FEEDS[0]: [Headline("NATO issues warning", "https://example.com/b")],
            FEEDS[1]: [Headline("Russia launches missile strike on Ukraine", "https://example.com/a")],
        }

    async def fetch(self, url: str) -> list[Headline]:
        if self.failing:
            raise SourceUnavailable(f"{url}: 503")
        return list(self.feeds[url])


class FakeEstimator:
    def __init__(self, score: float | None = 30.0, summary: str = "Ongoing regional war.") -> None:
        self.score = score
        self.summary = summary
        self.calls = 0

    async def estimate(self, headlines) -> ExternalEstimate:
        self.calls += 1
        return ExternalEstimate(score=self.score, summary=self.summary)


class FailingStore:
    async def get(self, key: str) -> str | None:
        raise StoreUnavailable("store down")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise StoreUnavailable("store down")


def _pipeline(
    source: FakeFeedSource | None = None,
    estimator: FakeEstimator | None = None,
    store=None,
    clock: FakeClock | None = None,
) -> tuple[ScorePipeline, FakeFeedSource, FakeEstimator, FakeClock]:
    settings = Settings(feed_urls=FEEDS, cache_ttl_seconds=900)
    source = source or FakeFeedSource()
    estimator = estimator or FakeEstimator()
    clock = clock or FakeClock()
    store = store if store is not None else InMemoryCacheStore(clock=clock)
    pipeline = ScorePipeline(
        settings=settings,
        feed_source=source,
        estimator=estimator,
        gate=CacheGate(store, settings, clock=clock),
        clock=clock,
    )
    return pipeline, source, estimator, clock


@pytest.mark.asyncio
async def test_full_computation_blends_and_refloors() -> None:
    pipeline, _, estimator, clock = _pipeline()

    result = await pipeline.get_score()

    assert result.status_code == 200
    assert result.cache_status == "miss"
    record = result.record
    assert record.heuristic_score == 25.0
    assert record.external_score == 30.0
    # 25 * 0.6 + 30 * 0.4
    assert record.score == pytest.approx(27.0)
    assert record.summary == "Ongoing regional war."
    assert [h.title for h in record.headlines] == [
        "NATO issues warning",
        "Russia launches missile strike on Ukraine",
    ]
    assert record.computed_at == clock()
    assert estimator.calls == 1


@pytest.mark.asyncio
async def test_unchanged_news_within_ttl_is_served_from_cache() -> None:
    pipeline, source, estimator, clock = _pipeline()

    with patch("conflictmeter.services.pipeline.score_headlines", wraps=score_headlines) as heuristic:
        first = await pipeline.get_score()
        clock.advance(60)
        # same titles, different feed order
        source.feeds = {FEEDS[0]: source.feeds[FEEDS[1]], FEEDS[1]: source.feeds[FEEDS[0]]}
        second = await pipeline.get_score()

    assert second.cache_status == "hit"
    assert second.record.to_json() == first.record.to_json()
    assert heuristic.call_count == 1
    assert estimator.calls == 1


@pytest.mark.asyncio
async def test_changed_news_forces_recomputation() -> None:
    pipeline, source, estimator, _ = _pipeline()

    await pipeline.get_score()
    source.feeds[FEEDS[0]] = [Headline("Peace talks resume in Geneva", "https://example.com/c")]
    result = await pipeline.get_score()

    assert result.cache_status == "miss"
    assert estimator.calls == 2


@pytest.mark.asyncio
async def test_expired_ttl_forces_recomputation() -> None:
    pipeline, _, estimator, clock = _pipeline()

    await pipeline.get_score()
    clock.advance(901)
    result = await pipeline.get_score()

    assert result.cache_status == "miss"
    assert estimator.calls == 2


@pytest.mark.asyncio
async def test_ingestion_failure_serves_stale_cache() -> None:
    pipeline, source, estimator, clock = _pipeline()

    fresh = await pipeline.get_score()
    clock.advance(7200)
    source.failing = True
    result = await pipeline.get_score()

    assert result.status_code == 200
    assert result.cache_status == "stale"
    assert result.record == fresh.record
    assert estimator.calls == 1


@pytest.mark.asyncio
async def test_ingestion_failure_without_cache_returns_sentinel() -> None:
    source = FakeFeedSource()
    source.failing = True
    store = InMemoryCacheStore()
    pipeline, _, estimator, _ = _pipeline(source=source, store=store)

    result = await pipeline.get_score()

    assert result.status_code == 500
    assert result.cache_status == "unavailable"
    assert result.record.score == -100
    assert result.record.summary == "Unable to fetch headlines."
    assert result.record.headlines == []
    assert estimator.calls == 0
    assert await store.get("ww3:score") is None
    assert await store.get("ww3:hash") is None


@pytest.mark.asyncio
async def test_estimator_failure_degrades_to_heuristic() -> None:
    pipeline, _, _, _ = _pipeline(estimator=FakeEstimator(score=None, summary="AI summary unavailable."))

    result = await pipeline.get_score()

    assert result.status_code == 200
    assert result.record.external_score is None
    assert result.record.score == result.record.heuristic_score == 25.0


@pytest.mark.asyncio
async def test_multi_hotspot_floor_survives_low_external_score() -> None:
    source = FakeFeedSource()
    source.feeds = {
        FEEDS[0]: [Headline("Israel warns Iran over proxies", None)],
        FEEDS[1]: [Headline("Taiwan tracks Chinese carrier group", None)],
    }
    pipeline, _, _, _ = _pipeline(source=source, estimator=FakeEstimator(score=0.0))

    result = await pipeline.get_score()

    assert result.record.score >= 40.0


@pytest.mark.asyncio
async def test_store_outage_does_not_fail_request() -> None:
    pipeline, _, estimator, _ = _pipeline(store=FailingStore())

    first = await pipeline.get_score()
    second = await pipeline.get_score()

    assert first.status_code == second.status_code == 200
    assert second.cache_status == "miss"
    assert estimator.calls == 2


def test_cache_control_header() -> None:
    settings = Settings(cache_ttl_seconds=900, stale_while_revalidate_seconds=60)
    assert cache_control_header(settings) == "public, max-age=900, stale-while-revalidate=60"
