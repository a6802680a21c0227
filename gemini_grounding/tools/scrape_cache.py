from __future__ import annotations

import time
from typing import Callable

from gemini_grounding.config import settings
from gemini_grounding.models.interfaces import CacheEntry, ScrapedContent

Clock = Callable[[], float]


class ScrapeCache:
    """Process-lifetime, URL-keyed cache of successful scrapes.

    Entries older than the TTL are ignored on lookup and replaced by the next
    successful scrape; nothing is evicted proactively.
    """

    def __init__(self, *, ttl_seconds: float | None = None, clock: Clock | None = None):
        ttl = settings.cache_ttl if ttl_seconds is None else ttl_seconds
        self.ttl_seconds = max(float(ttl), 0.0)
        self._clock = clock or time.time
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.load(url) is not None

    def load(self, url: str) -> ScrapedContent | None:
        entry = self._entries.get(url)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            return None
        return entry.content

    def save(self, url: str, content: ScrapedContent) -> None:
        if content.error is not None:
            return
        self._entries[url] = CacheEntry(content=content, timestamp=self._clock())

    def clear(self) -> None:
        self._entries.clear()
