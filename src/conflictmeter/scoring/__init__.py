"""Heuristic scoring, blending and output invariants."""

from conflictmeter.scoring.bands import risk_band
from conflictmeter.scoring.blend import BlendResult, blend_scores
from conflictmeter.scoring.heuristic import analyze_headlines, score_headlines
from conflictmeter.scoring.types import ScoreRecord, sentinel_record

__all__ = ["BlendResult", "ScoreRecord", "analyze_headlines", "blend_scores", "risk_band", "score_headlines", "sentinel_record"]
