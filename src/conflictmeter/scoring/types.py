from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from conflictmeter.news.models import Headline
from conflictmeter.scoring.bands import SENTINEL_SCORE, risk_band

SENTINEL_SUMMARY = "Unable to fetch headlines."


class HeadlinePayload(BaseModel):
    title: str
    link: str | None = None


class ScoreRecord(BaseModel):
    """The unit that is cached and returned to callers."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    score: float
    summary: str
    headlines: list[HeadlinePayload] = Field(default_factory=list)
    heuristic_score: float | None = Field(default=None, alias="heuristicScore")
    external_score: float | None = Field(default=None, alias="externalScore")
    computed_at: datetime = Field(alias="lastUpdated")

    @field_validator("score")
    @classmethod
    def _score_in_range(cls, value: float) -> float:
        if value != SENTINEL_SCORE and not 0.0 <= value <= 100.0:
            raise ValueError(f"score {value} outside [0, 100]")
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def band(self) -> str:
        return risk_band(self.score)

    @property
    def is_sentinel(self) -> bool:
        return self.score == SENTINEL_SCORE

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def headline_payloads(headlines: Sequence[Headline]) -> list[HeadlinePayload]:
    return [HeadlinePayload(title=h.title, link=h.link) for h in headlines]


def sentinel_record(now: datetime | None = None) -> ScoreRecord:
    return ScoreRecord(
        score=SENTINEL_SCORE,
        summary=SENTINEL_SUMMARY,
        headlines=[],
        computed_at=now or datetime.now(UTC),
    )
