from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from conflictmeter.core.config import Settings
from conflictmeter.llm.types import ExternalEstimate
from conflictmeter.news.models import Headline
from conflictmeter.scoring.heuristic import active_hotspots, keyword_pattern

LOGGER = logging.getLogger(__name__)

HEURISTIC_ONLY_SUMMARY = "External estimate unavailable; score reflects the headline heuristic only."

# Generic conflict words that count as a single hotspot when re-flooring.
CONFLICT_TERMS = keyword_pattern(r"war\b", "missile", "strike")


@dataclass(slots=True)
class BlendResult:
    score: float
    summary: str


def _is_valid_external(score: float | None) -> bool:
    return score is not None and 0.0 <= score <= 100.0


def refloor(score: float, headlines: Sequence[Headline], settings: Settings) -> float:
    """Re-apply the hotspot floor that blending may have pulled the score under."""
    titles = [h.title for h in headlines]
    clusters = active_hotspots(titles)
    if len(clusters) >= 2:
        return max(score, settings.multi_hotspot_floor)
    if clusters or any(CONFLICT_TERMS.search(title) for title in titles):
        return max(score, settings.single_hotspot_floor)
    return score


def blend_scores(
    heuristic: float,
    estimate: ExternalEstimate,
    headlines: Sequence[Headline],
    settings: Settings,
) -> BlendResult:
    """Combine heuristic and external scores and enforce the output invariants.

    Rules, applied in order:

    * unusable external score: keep the heuristic;
    * close agreement: weighted average favouring the heuristic;
    * large disagreement: take the higher score, capped when it is extreme;
    * nothing above the safety rail unless both scores are up there;
    * hotspot re-floor, so active conflicts never read as full peace.
    """
    external = estimate.score
    if not _is_valid_external(external):
        final = heuristic
        summary = HEURISTIC_ONLY_SUMMARY
    elif abs(external - heuristic) <= settings.agreement_threshold:
        weight = settings.heuristic_weight
        final = round(heuristic * weight + external * (1.0 - weight), 2)
        summary = estimate.summary
    else:
        final = max(heuristic, external)
        summary = estimate.summary
        if final > settings.extreme_score_threshold:
            final = min(final, settings.disagreement_ceiling)
            summary = (
                f"{estimate.summary} (Heuristic score {heuristic:.2f} and external estimate "
                f"{external:.2f} disagree; result capped at {final:.2f}.)"
            ).strip()
            LOGGER.warning(
                "Score disagreement capped heuristic=%.2f external=%.2f final=%.2f", heuristic, external, final
            )

    rail = settings.safety_rail_threshold
    both_high = _is_valid_external(external) and heuristic >= rail and external >= rail
    if final > rail and not both_high:
        final = settings.safety_rail_cap

    final = refloor(final, headlines, settings)
    final = round(float(np.clip(final, 0.0, 100.0)), 2)
    return BlendResult(score=final, summary=summary)
