from __future__ import annotations

from datetime import UTC, datetime

from conflictmeter.api import create_app
from conflictmeter.core.config import Settings
from conflictmeter.scoring.types import HeadlinePayload, ScoreRecord, sentinel_record
from conflictmeter.services.pipeline import ScoreResponse

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakePipeline:
    def __init__(self, response: ScoreResponse) -> None:
        self.response = response
        self.calls = 0

    async def get_score(self) -> ScoreResponse:
        self.calls += 1
        return self.response


def _client(response: ScoreResponse):
    settings = Settings(cache_ttl_seconds=900, stale_while_revalidate_seconds=60)
    pipeline = FakePipeline(response)
    return create_app(settings, pipeline=pipeline).test_client(), pipeline


def test_score_route_returns_record_with_cache_headers() -> None:
    record = ScoreRecord(
        score=27.0,
        summary="Ongoing regional war.",
        headlines=[HeadlinePayload(title="NATO issues warning", link="https://example.com/b")],
        heuristic_score=25.0,
        external_score=30.0,
        computed_at=NOW,
    )
    client, pipeline = _client(ScoreResponse(record=record, status_code=200, cache_status="miss"))

    response = client.get("/api/score")

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "public, max-age=900, stale-while-revalidate=60"
    body = response.get_json()
    assert body["score"] == 27.0
    assert body["heuristicScore"] == 25.0
    assert body["externalScore"] == 30.0
    assert body["headlines"] == [{"title": "NATO issues warning", "link": "https://example.com/b"}]
    assert body["band"] == "TENSION"
    assert pipeline.calls == 1


def test_score_route_returns_500_with_sentinel() -> None:
    client, _ = _client(ScoreResponse(record=sentinel_record(NOW), status_code=500, cache_status="unavailable"))

    response = client.get("/api/score")

    assert response.status_code == 500
    body = response.get_json()
    assert body["score"] == -100
    assert body["summary"] == "Unable to fetch headlines."
    assert body["headlines"] == []
    assert body["lastUpdated"].startswith("2026-03-01T12:00:00")
