from __future__ import annotations

from gemini_grounding.config import settings
from gemini_grounding.models.interfaces import ScrapedContent
from gemini_grounding.tools.scrape_cache import ScrapeCache


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_entry_is_served_until_ttl_elapses():
    clock = _Clock()
    cache = ScrapeCache(ttl_seconds=10, clock=clock)
    page = ScrapedContent(url="https://example.com", title="Example", content="body")

    cache.save(page.url, page)
    clock.now += 9.5
    assert cache.load(page.url) is page
    assert page.url in cache

    clock.now += 0.5
    assert cache.load(page.url) is None
    assert page.url not in cache


def test_error_results_are_not_cached():
    cache = ScrapeCache(ttl_seconds=60)
    failed = ScrapedContent(url="https://example.com", title="Error", content=None, error="boom")

    cache.save(failed.url, failed)

    assert len(cache) == 0
    assert cache.load(failed.url) is None


def test_save_replaces_stale_entry_and_clear_empties():
    clock = _Clock()
    cache = ScrapeCache(ttl_seconds=5, clock=clock)
    first = ScrapedContent(url="https://example.com", title="v1", content="one")
    second = ScrapedContent(url="https://example.com", title="v2", content="two")

    cache.save(first.url, first)
    clock.now += 6
    cache.save(second.url, second)
    assert cache.load(second.url) is second

    cache.clear()
    assert len(cache) == 0


def test_ttl_defaults_to_settings(monkeypatch):
    monkeypatch.setattr(settings, "cache_ttl", 42)
    assert ScrapeCache().ttl_seconds == 42
