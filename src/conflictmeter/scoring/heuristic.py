"""Deterministic keyword heuristic for the global conflict risk score.

Every signal is evaluated per headline and summed, so the score is a pure
aggregate over the headline set: reordering headlines never changes it. The
keyword data lives in the tables below; the scoring functions only consume it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from conflictmeter.core.config import Settings
from conflictmeter.news.models import Headline

LOGGER = logging.getLogger(__name__)


def keyword_pattern(*fragments: str, word_start: bool = True) -> re.Pattern[str]:
    # With word_start, fragments match at a word start; add \b inside a fragment for whole words.
    # Without it they also match inside compounds such as "airstrike".
    prefix = r"\b" if word_start else ""
    return re.compile(prefix + "(?:" + "|".join(fragments) + ")", re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class HotspotCluster:
    name: str
    pattern: re.Pattern[str]
    floor: float


@dataclass(slots=True, frozen=True)
class Superpower:
    name: str
    pattern: re.Pattern[str]


@dataclass(slots=True, frozen=True)
class WeightedPattern:
    name: str
    pattern: re.Pattern[str]
    weight: float


HOTSPOT_CLUSTERS: tuple[HotspotCluster, ...] = (
    HotspotCluster("russia-ukraine", keyword_pattern("ukrain", "donbas", "russia", "putin", "kremlin", "kyiv", "crimea"), 25.0),
    HotspotCluster("israel-iran", keyword_pattern("israel", "iran", "hezbollah", "hamas", "gaza", "tehran"), 25.0),
    HotspotCluster("taiwan-china", keyword_pattern("taiwan", r"china\b", "chinese", "beijing", r"pla\b"), 25.0),
)

# Acronyms are case-sensitive so that "us" the pronoun is not read as the US.
SUPERPOWERS: tuple[Superpower, ...] = (
    Superpower("united-states", re.compile(r"\b(?:USA?|U\.S\.)(?!\w)|(?i:\bunited states\b|\bamerica)")),
    Superpower("china", re.compile(r"(?i:\bchina\b|\bchinese\b|\bbeijing\b)")),
    Superpower("russia", re.compile(r"(?i:\brussia|\bkremlin\b|\bmoscow\b)")),
    Superpower("iran", re.compile(r"(?i:\biran(?:ian)?\b|\btehran\b)")),
    Superpower("nato", re.compile(r"(?i:\bnato\b)")),
    Superpower("united-kingdom", re.compile(r"\bUK\b|(?i:\bbritain\b|\bbritish\b|\bunited kingdom\b)")),
    Superpower("france", re.compile(r"(?i:\bfrance\b|\bfrench\b)")),
)

ACTION_PATTERN = keyword_pattern(
    "strik", "bomb", "attack", "launch", "invad", "invasion", "missile", "retaliat", "shell", "drone", "escalat",
    word_start=False,
)
NUCLEAR_THREAT_PATTERN = re.compile(r"\bnuclear (?:facilit|site|plant|program|attack|strike)", re.IGNORECASE)

KEYWORD_WEIGHTS: tuple[WeightedPattern, ...] = (
    WeightedPattern(
        "conflict-action",
        keyword_pattern("strike", "attack", "bombing", "missile", "drone", "shelling", word_start=False),
        5.0,
    ),
    WeightedPattern(
        "escalation-rhetoric",
        keyword_pattern("sanction", "retaliat", "warning", "consequence", "escalation", word_start=False),
        3.0,
    ),
)

MAJOR_ESCALATION = WeightedPattern(
    "major-escalation",
    keyword_pattern(
        "major escalation",
        "on the brink",
        "total war",
        "full-scale",
        "direct military",
        "regional war",
        "all-out war",
    ),
    20.0,
)
DIPLOMACY = WeightedPattern(
    "diplomacy",
    keyword_pattern("ceasefire", "diplomacy", "peace talks", "negotiation", "de-escalation", "summit", "armistice"),
    -15.0,
)

# (superpower conflict present, nuclear threat present) -> bonus
TIER_BONUS: dict[tuple[bool, bool], float] = {
    (True, True): 70.0,
    (True, False): 50.0,
    (False, True): 25.0,
    (False, False): 0.0,
}
EXTRA_INSTANCE_BONUS = 5.0
EXTRA_INSTANCE_BONUS_CAP = 15.0


@dataclass(slots=True)
class HeuristicBreakdown:
    active_clusters: list[str] = field(default_factory=list)
    floor: float = 0.0
    superpower_conflicts: int = 0
    nuclear_threats: int = 0
    tier_bonus: float = 0.0
    keyword_bonus: float = 0.0
    escalation_bonus: float = 0.0
    diplomacy_penalty: float = 0.0
    raw_total: float = 0.0
    score: float = 0.0


def active_hotspots(titles: Sequence[str]) -> list[str]:
    """Return the names of hotspot clusters mentioned by any title."""
    return [
        cluster.name
        for cluster in HOTSPOT_CLUSTERS
        if any(cluster.pattern.search(title) for title in titles)
    ]


def hotspot_floor(titles: Sequence[str], settings: Settings) -> float:
    clusters = active_hotspots(titles)
    floor = max((c.floor for c in HOTSPOT_CLUSTERS if c.name in clusters), default=0.0)
    if len(clusters) >= 2:
        floor = max(floor, settings.multi_hotspot_floor)
    return floor


def is_superpower_conflict(title: str) -> bool:
    powers = sum(1 for power in SUPERPOWERS if power.pattern.search(title))
    return powers >= 2 and ACTION_PATTERN.search(title) is not None


def is_nuclear_threat(title: str) -> bool:
    return NUCLEAR_THREAT_PATTERN.search(title) is not None


def tier_bonus(superpower_conflicts: int, nuclear_threats: int) -> float:
    base = TIER_BONUS[(superpower_conflicts > 0, nuclear_threats > 0)]
    extra_instances = max(superpower_conflicts - 1, 0) + max(nuclear_threats - 1, 0)
    return base + min(extra_instances * EXTRA_INSTANCE_BONUS, EXTRA_INSTANCE_BONUS_CAP)


def analyze_headlines(headlines: Sequence[Headline], settings: Settings) -> HeuristicBreakdown:
    titles = [h.title for h in headlines]
    breakdown = HeuristicBreakdown()
    breakdown.active_clusters = active_hotspots(titles)
    breakdown.floor = hotspot_floor(titles, settings)

    breakdown.superpower_conflicts = sum(1 for title in titles if is_superpower_conflict(title))
    breakdown.nuclear_threats = sum(1 for title in titles if is_nuclear_threat(title))
    breakdown.tier_bonus = tier_bonus(breakdown.superpower_conflicts, breakdown.nuclear_threats)

    breakdown.keyword_bonus = sum(
        rule.weight * len(rule.pattern.findall(title)) for rule in KEYWORD_WEIGHTS for title in titles
    )
    if any(MAJOR_ESCALATION.pattern.search(title) for title in titles):
        breakdown.escalation_bonus = MAJOR_ESCALATION.weight
    if any(DIPLOMACY.pattern.search(title) for title in titles):
        breakdown.diplomacy_penalty = DIPLOMACY.weight

    breakdown.raw_total = (
        breakdown.tier_bonus + breakdown.keyword_bonus + breakdown.escalation_bonus + breakdown.diplomacy_penalty
    )
    clamped = float(np.clip(breakdown.raw_total, 0.0, settings.heuristic_ceiling))
    breakdown.score = round(max(clamped, breakdown.floor), 2)
    return breakdown


def score_headlines(headlines: Sequence[Headline], settings: Settings) -> float:
    breakdown = analyze_headlines(headlines, settings)
    LOGGER.debug(
        "Heuristic score=%.2f raw=%.2f floor=%.2f clusters=%s superpower=%d nuclear=%d",
        breakdown.score,
        breakdown.raw_total,
        breakdown.floor,
        breakdown.active_clusters,
        breakdown.superpower_conflicts,
        breakdown.nuclear_threats,
    )
    return breakdown.score
