"""Headline normalization, deduplication and content fingerprinting."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from conflictmeter.news.models import Headline

FINGERPRINT_SEPARATOR = "||"


def normalize_title(title: str) -> str:
    return title.strip().lower()


def dedupe_headlines(headlines: Iterable[Headline]) -> list[Headline]:
    """Drop repeated titles, keeping the first occurrence in input order."""
    seen: set[str] = set()
    out: list[Headline] = []
    for headline in headlines:
        key = normalize_title(headline.title)
        if key in seen:
            continue
        seen.add(key)
        out.append(headline)
    return out


def fingerprint_headlines(headlines: Iterable[Headline]) -> str:
    """Return an order-independent digest of the normalized titles.

    Two fetches with the same set of titles produce the same fingerprint no
    matter which feed answered first or when they were retrieved.
    """
    joined = FINGERPRINT_SEPARATOR.join(sorted(normalize_title(h.title) for h in headlines))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
