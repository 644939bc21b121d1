from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from conflictmeter.core.exceptions import IngestionFailed
from conflictmeter.news.headlines import dedupe_headlines
from conflictmeter.news.models import Headline
from conflictmeter.news.sources import BaseFeedSource

LOGGER = logging.getLogger(__name__)


async def ingest_headlines(
    source: BaseFeedSource,
    urls: Sequence[str],
    max_headlines: int,
) -> list[Headline]:
    """Fetch every feed, merge in feed priority order, dedupe and truncate.

    All fetches must succeed: one failing feed aborts the whole ingestion so
    that a partial headline set never drifts the score.
    """
    if not urls:
        raise IngestionFailed("No feed URLs configured")

    results = await asyncio.gather(*(source.fetch(url) for url in urls), return_exceptions=True)

    merged: list[Headline] = []
    for url, result in zip(urls, results, strict=True):
        if isinstance(result, BaseException):
            LOGGER.warning("Feed fetch failed for %s: %s", url, result)
            raise IngestionFailed(f"Feed fetch failed: {url}") from result
        merged.extend(result)

    headlines = dedupe_headlines(merged)[:max_headlines]
    LOGGER.info("Ingested %d headlines (%d raw) from %d feeds", len(headlines), len(merged), len(urls))
    return headlines
