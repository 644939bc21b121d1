from __future__ import annotations

from pydantic import BaseModel


class ExternalEstimate(BaseModel):
    # Range is checked by the blender, which falls back to the heuristic.
    score: float | None = None
    summary: str = ""
