from __future__ import annotations

SENTINEL_SCORE = -100.0

# (lower bound, label), highest first
RISK_BANDS: tuple[tuple[float, str], ...] = (
    (100.0, "WORLD WAR"),
    (90.0, "CRITICAL"),
    (70.0, "CRISIS"),
    (30.0, "ELEVATED"),
    (11.0, "TENSION"),
    (0.0, "PEACE"),
)


def risk_band(score: float) -> str:
    if score == SENTINEL_SCORE:
        return "UNAVAILABLE"
    for lower, label in RISK_BANDS:
        if score >= lower:
            return label
    return "PEACE"
