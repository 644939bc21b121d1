from __future__ import annotations

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

import httpx

from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import EstimatorMalformed, EstimatorUnavailable, ServiceError
from conflictmeter.llm.types import ExternalEstimate
from conflictmeter.news.models import Headline

LOGGER = logging.getLogger(__name__)

FALLBACK_SUMMARY = "AI summary unavailable (estimator error)."

RUBRIC = """Estimate a global war risk score from 0 (peace) to 100 (World War III is officially underway), following these rules:
- 0-10: Full peace, no military incidents or threats
- 11-29: Tensions/diplomatic incidents, but no direct military fighting
- 30-49: Local wars, no major superpower clash
- 50-69: Large regional war, threats, some superpower involvement, but not total war
- 70-89: Direct fighting between superpowers, multiple crises, mobilization, high risk
- 90-99: Large-scale superpower war or confirmed nuclear use, not formal world war
- 100: Only with an official declaration of World War III or a confirmed, ongoing war between multiple superpowers. Escalation alone never qualifies.

Respond in strict JSON only: {"score": <number>, "summary": "<1-2 sentences explanation, mention key headlines>"}"""

_FENCE_OPEN = re.compile(r"^```(?:json)?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```$")


class BaseReasoningService(ABC):
    @abstractmethod
    async def complete(self, prompt: str) -> str:
        raise NotImplementedError


class MockReasoningService(BaseReasoningService):
    """Offline stand-in that scores the prompt's headlines by keyword count."""

    KEYWORDS: ClassVar[dict[str, float]] = {
        "war": 12.0,
        "invasion": 12.0,
        "missile": 8.0,
        "strike": 8.0,
        "nuclear": 10.0,
        "attack": 6.0,
        "sanction": 3.0,
        "ceasefire": -10.0,
        "peace": -6.0,
    }

    async def complete(self, prompt: str) -> str:
        lines = [line.lower() for line in prompt.splitlines() if re.match(r"^\d+\. ", line)]
        score = 5.0
        matched: list[str] = []
        for line in lines:
            for keyword, weight in self.KEYWORDS.items():
                if keyword in line:
                    score += weight
                    matched.append(keyword)
        score = max(0.0, min(score, 95.0))
        summary = (
            f"Mock estimate from {len(lines)} headlines; matched: {', '.join(sorted(set(matched)))}."
            if matched
            else f"Mock estimate from {len(lines)} headlines; no conflict keywords matched."
        )
        return json.dumps({"score": round(score, 2), "summary": summary})


class OpenAIReasoningService(BaseReasoningService):
    def __init__(self, settings: Settings) -> None:
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required for estimator_provider=openai")
        self.api_key = settings.openai_api_key
        self.base_url = settings.openai_base_url.rstrip("/")
        self.model = settings.estimator_model
        self.max_tokens = settings.estimator_max_tokens
        self.temperature = settings.estimator_temperature
        self.timeout = settings.estimator_timeout_seconds

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise EstimatorUnavailable(f"OpenAI request failed: {exc}") from exc

        return _extract_text_from_chat_completion(data)


def _extract_text_from_chat_completion(data: dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
    return "{}"


def build_prompt(headlines: Sequence[Headline], max_headlines: int) -> str:
    numbered = "\n".join(f"{i}. {h.title}" for i, h in enumerate(headlines[:max_headlines], start=1))
    return (
        "You are an expert geopolitical analyst for a World War III risk gauge.\n"
        f"Given these global headlines:\n{numbered}\n\n{RUBRIC}"
    )


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()
    return text


def _as_score(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        score = float(value)
    except OverflowError:
        return None
    return score if math.isfinite(score) else None


def parse_estimate(text: str) -> ExternalEstimate:
    """Decode a reasoning-service reply into an estimate.

    The reply must be a JSON object. ``score`` is kept only when it is a
    finite number and ``summary`` only when it is a string; a reply with
    neither is rejected.
    """
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise EstimatorMalformed(f"Estimator reply is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise EstimatorMalformed(f"Estimator reply is not an object: {type(payload).__name__}")

    raw_score = payload.get("score")
    raw_summary = payload.get("summary")

    score = _as_score(raw_score)
    summary = raw_summary.strip() if isinstance(raw_summary, str) else None

    if score is None and summary is None:
        raise EstimatorMalformed("Estimator reply has neither a numeric score nor a summary")
    return ExternalEstimate(score=score, summary=summary if summary is not None else FALLBACK_SUMMARY)


class ExternalEstimator:
    """Adapter around the reasoning service; never raises to the pipeline."""

    def __init__(self, service: BaseReasoningService, max_headlines: int = 20) -> None:
        self.service = service
        self.max_headlines = max_headlines

    async def estimate(self, headlines: Sequence[Headline]) -> ExternalEstimate:
        prompt = build_prompt(headlines, self.max_headlines)
        try:
            text = await self.service.complete(prompt)
            return parse_estimate(text)
        except ServiceError as exc:
            LOGGER.warning("External estimator unavailable: %s", exc)
        except EstimatorMalformed as exc:
            LOGGER.warning("External estimator returned malformed output: %s", exc)
        return ExternalEstimate(score=None, summary=FALLBACK_SUMMARY)


def build_reasoning_service(settings: Settings) -> BaseReasoningService:
    if settings.estimator_provider == "mock":
        return MockReasoningService()
    if settings.estimator_provider == "openai":
        return OpenAIReasoningService(settings)
    raise ValueError(f"Unsupported estimator provider: {settings.estimator_provider}")


def build_estimator(settings: Settings) -> ExternalEstimator:
    return ExternalEstimator(build_reasoning_service(settings), max_headlines=settings.max_headlines)
