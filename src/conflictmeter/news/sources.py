from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import feedparser
import httpx

from conflictmeter.core.config import Settings
from conflictmeter.core.exceptions import SourceUnavailable
from conflictmeter.news.models import Headline

LOGGER = logging.getLogger(__name__)

USER_AGENT = "conflictmeter/0.1"


class BaseFeedSource(ABC):
    @abstractmethod
    async def fetch(self, url: str) -> list[Headline]:
        raise NotImplementedError


class RssFeedSource(BaseFeedSource):
    """RSS/Atom feed reader: httpx for transport, feedparser for the document."""

    def __init__(self, settings: Settings) -> None:
        self.timeout = settings.feed_timeout_seconds

    async def fetch(self, url: str) -> list[Headline]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"{url}: {exc}") from exc

        return _parse_feed(url, response.content)


def _parse_feed(url: str, content: bytes) -> list[Headline]:
    parsed = feedparser.parse(content)
    if parsed.bozo and not parsed.entries:
        raise SourceUnavailable(f"{url}: unreadable feed ({parsed.get('bozo_exception')})")

    items: list[Headline] = []
    for entry in parsed.entries:
        title = str(entry.get("title") or "").strip()
        if not title:
            continue
        link = entry.get("link")
        items.append(Headline(title=title, link=str(link) if link else None))

    LOGGER.debug("Parsed %d entries from %s", len(items), url)
    return items


def build_feed_source(settings: Settings) -> BaseFeedSource:
    return RssFeedSource(settings)
