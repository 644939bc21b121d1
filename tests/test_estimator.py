from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import EstimatorMalformed, ServiceError
from conflictmeter.llm.estimator import (
    FALLBACK_SUMMARY,
    ExternalEstimator,
    MockReasoningService,
    OpenAIReasoningService,
    build_prompt,
    build_reasoning_service,
    parse_estimate,
    strip_code_fences,
)
from conflictmeter.news.models import Headline

HEADLINES = [
    Headline(title="Russia launches missile strike on Ukraine", link="https://example.com/a"),
    Headline(title="NATO issues warning", link="https://example.com/b"),
]


def _mock_response(json_data: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        json=json_data,
        request=httpx.Request("POST", "https://mock"),
    )


class StaticService:
    def __init__(self, text: str) -> None:
        self.text = text
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


class FailingService:
    async def complete(self, prompt: str) -> str:
        raise ServiceError("upstream timeout")


def test_strip_code_fences() -> None:
    assert strip_code_fences('```json\n{"score": 1}\n```') == '{"score": 1}'
    assert strip_code_fences('```\n{"score": 1}\n```') == '{"score": 1}'
    assert strip_code_fences('  {"score": 1}  ') == '{"score": 1}'


def test_parse_estimate_accepts_fenced_json() -> None:
    estimate = parse_estimate('```json\n{"score": 42, "summary": " Tense standoff. "}\n```')
    assert estimate.score == 42.0
    assert estimate.summary == "Tense standoff."


def test_parse_estimate_keeps_valid_fields_only() -> None:
    no_summary = parse_estimate('{"score": 50}')
    assert no_summary.score == 50.0
    assert no_summary.summary == FALLBACK_SUMMARY

    bool_score = parse_estimate('{"score": true, "summary": "x"}')
    assert bool_score.score is None
    assert bool_score.summary == "x"


@pytest.mark.parametrize(
    "text",
    ["not json at all", "[1, 2, 3]", '{"score": "50"}', '{"verdict": 10}', ""],
)
def test_parse_estimate_rejects_malformed(text: str) -> None:
    with pytest.raises(EstimatorMalformed):
        parse_estimate(text)


def test_build_prompt_numbers_headlines_and_states_rubric() -> None:
    prompt = build_prompt(HEADLINES * 3, max_headlines=4)
    assert "1. Russia launches missile strike on Ukraine" in prompt
    assert "4. NATO issues warning" in prompt
    assert "5. " not in prompt
    assert "official declaration" in prompt
    assert '{"score"' in prompt


@pytest.mark.asyncio
async def test_estimator_returns_parsed_estimate() -> None:
    service = StaticService('{"score": 33.5, "summary": "Regional fighting."}')
    estimate = await ExternalEstimator(service).estimate(HEADLINES)

    assert estimate.score == 33.5
    assert estimate.summary == "Regional fighting."
    assert len(service.prompts) == 1


@pytest.mark.asyncio
async def test_estimator_degrades_on_service_error() -> None:
    estimate = await ExternalEstimator(FailingService()).estimate(HEADLINES)
    assert estimate.score is None
    assert estimate.summary == FALLBACK_SUMMARY


@pytest.mark.asyncio
async def test_estimator_degrades_on_malformed_reply() -> None:
    estimate = await ExternalEstimator(StaticService("I think about 40?")).estimate(HEADLINES)
    assert estimate.score is None
    assert estimate.summary == FALLBACK_SUMMARY


@pytest.mark.asyncio
async def test_mock_service_produces_parseable_json() -> None:
    text = await MockReasoningService().complete(build_prompt(HEADLINES, 20))
    payload = json.loads(text)
    assert 0 <= payload["score"] <= 100
    assert isinstance(payload["summary"], str)


@pytest.mark.asyncio
async def test_openai_service_reads_chat_completion() -> None:
    settings = Settings(estimator_provider="openai", openai_api_key="sk-test")
    content = '```json\n{"score": 35, "summary": "Localized war."}\n```'

    with patch("conflictmeter.llm.estimator.httpx.AsyncClient") as MockClient:
        mock_client = AsyncMock()
        mock_client.post.return_value = _mock_response({"choices": [{"message": {"content": content}}]})
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        MockClient.return_value = mock_client

        estimate = await ExternalEstimator(build_reasoning_service(settings)).estimate(HEADLINES)

    assert estimate.score == 35.0
    assert estimate.summary == "Localized war."
    payload = mock_client.post.call_args.kwargs["json"]
    assert payload["model"] == "gpt-4.1-mini"
    assert payload["max_tokens"] == 280


@pytest.mark.asyncio
async def test_openai_service_http_error_degrades() -> None:
    settings = Settings(estimator_provider="openai", openai_api_key="sk-test")

    with patch("conflictmeter.llm.estimator.httpx.AsyncClient") as MockClient:
        mock_client = AsyncMock()
        mock_client.post.return_value = _mock_response({"error": "overloaded"}, status_code=503)
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        MockClient.return_value = mock_client

        estimate = await ExternalEstimator(OpenAIReasoningService(settings)).estimate(HEADLINES)

    assert estimate.score is None
    assert estimate.summary == FALLBACK_SUMMARY


def test_openai_service_requires_api_key() -> None:
    with pytest.raises(ValueError):
        OpenAIReasoningService(Settings(estimator_provider="openai", openai_api_key=None))
