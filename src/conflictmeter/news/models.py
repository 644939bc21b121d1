from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Headline:
    title: str
    link: str | None
