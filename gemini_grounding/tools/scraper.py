from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Protocol

import httpx
from loguru import logger

from gemini_grounding.config import settings
from gemini_grounding.models.interfaces import CONTENT_MODES, ContentMode, ScrapedContent
from gemini_grounding.services.logger import log_scrape
from gemini_grounding.tools import web_utils
from gemini_grounding.tools.content_extractor import article_to_markdown, extract_article
from gemini_grounding.tools.scrape_cache import ScrapeCache

EXCERPT_TRIGGER_RATIO = 1.5
SUMMARY_TRIGGER_RATIO = 1.2
EXCERPT_SUFFIX = "..."
SUMMARY_SUFFIX = "\n\n[Content truncated for summary mode]"
DEFAULT_TITLE = "Scraped Content"
ERROR_TITLE = "Error"

Sleep = Callable[[float], Awaitable[None]]


class Summarizer(Protocol):
    async def summarize(self, text: str, max_length: int) -> str: ...


class ScrapeError(RuntimeError):
    """One failed fetch attempt."""


def full_mode_suffix(max_content_length: int) -> str:
    return f"\n\n[Content truncated at {max_content_length} characters]"


class ContentScraper:
    """Fetch, extract and reduce pages, with retries and a TTL cache."""

    def __init__(
        self,
        *,
        summarizer: Summarizer | None = None,
        cache: ScrapeCache | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_ms: int | None = None,
        retries: int | None = None,
        excerpt_length: int | None = None,
        summary_length: int | None = None,
        max_content_length: int | None = None,
        batch_size: int | None = None,
        batch_delay_ms: int | None = None,
        sleep: Sleep | None = None,
    ):
        self.summarizer = summarizer
        self.cache = cache or ScrapeCache()
        self._http_client = http_client
        self.timeout_ms = max(int(timeout_ms if timeout_ms is not None else settings.scrape_timeout), 1)
        self.retries = int(retries if retries is not None else settings.scrape_retries)
        self.excerpt_length = int(excerpt_length or settings.excerpt_length)
        self.summary_length = int(summary_length or settings.summary_length)
        self.max_content_length = int(max_content_length or settings.max_content_length)
        self.batch_size = max(int(batch_size or settings.batch_size), 1)
        self.batch_delay_ms = max(
            int(batch_delay_ms if batch_delay_ms is not None else settings.rate_limit_delay), 0
        )
        self._sleep = sleep or asyncio.sleep

    async def scrape_url(
        self,
        url: str,
        *,
        content_mode: ContentMode = "full",
        max_content_length: int | None = None,
        retries: int | None = None,
    ) -> ScrapedContent:
        if content_mode not in CONTENT_MODES:
            raise ValueError(f"Unsupported content mode: {content_mode}")
        limit = int(max_content_length or self.max_content_length)

        cached = self.cache.load(url)
        if cached is not None:
            log_scrape(url, "cached", from_cache=True, content_mode=content_mode,
                       content_length=len(cached.content or ""))
            return cached

        max_attempts = int(retries if retries is not None else self.retries)
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                html = await self._fetch_html(url)
                article = await asyncio.to_thread(extract_article, html, url)
                markdown = await asyncio.to_thread(article_to_markdown, article.article_html)
            except Exception as exc:
                last_error = exc
                logger.warning(f"Failed to scrape {url} (attempt {attempt}/{max_attempts}): {exc}")
                if attempt < max_attempts:
                    await self._sleep(2 ** (attempt - 1))
                continue

            content = await self.apply_content_mode(markdown, content_mode, limit)
            result = ScrapedContent(
                url=url,
                title=article.title or DEFAULT_TITLE,
                content=content,
            )
            self.cache.save(url, result)
            log_scrape(url, "success", attempts=attempt, content_mode=content_mode,
                       content_length=len(content))
            return result

        message = str(last_error) if last_error is not None else ""
        if not message:
            message = type(last_error).__name__ if last_error is not None else "Unknown error"
        log_scrape(url, "failed", attempts=max_attempts, content_mode=content_mode, error=message)
        return ScrapedContent(url=url, title=ERROR_TITLE, content=None, error=message)

    async def scrape_urls(
        self,
        urls: list[str],
        *,
        content_mode: ContentMode = "full",
        max_content_length: int | None = None,
    ) -> list[ScrapedContent]:
        """Scrape in fixed-size concurrent batches, pausing between batches."""
        results: list[ScrapedContent] = []
        for start in range(0, len(urls), self.batch_size):
            batch = urls[start : start + self.batch_size]
            batch_results = await asyncio.gather(
                *(
                    self.scrape_url(
                        url,
                        content_mode=content_mode,
                        max_content_length=max_content_length,
                    )
                    for url in batch
                )
            )
            results.extend(batch_results)

            if start + self.batch_size < len(urls):
                await self._sleep(self.batch_delay_ms / 1000.0)
        return results

    def clear_cache(self) -> None:
        self.cache.clear()

    async def apply_content_mode(
        self,
        markdown: str,
        content_mode: ContentMode,
        max_content_length: int,
    ) -> str:
        if content_mode == "excerpt":
            return await self._reduce(
                markdown, self.excerpt_length, EXCERPT_TRIGGER_RATIO, EXCERPT_SUFFIX, "excerpt"
            )
        if content_mode == "summary":
            return await self._reduce(
                markdown, self.summary_length, SUMMARY_TRIGGER_RATIO, SUMMARY_SUFFIX, "summary"
            )
        return web_utils.truncate(markdown, max_content_length, full_mode_suffix(max_content_length))

    async def _reduce(
        self,
        markdown: str,
        target: int,
        trigger_ratio: float,
        suffix: str,
        label: str,
    ) -> str:
        if self.summarizer is not None and len(markdown) > target * trigger_ratio:
            try:
                return await self.summarizer.summarize(markdown, target)
            except Exception as exc:
                logger.warning(f"Failed to generate AI {label}, falling back to truncation: {exc}")
        return web_utils.truncate(markdown, target, suffix)

    async def _fetch_html(self, url: str) -> str:
        if not web_utils.is_valid_url(url):
            raise ScrapeError(f"Invalid URL: {url}")

        timeout_seconds = self.timeout_ms / 1000.0
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(self._get(url, timeout_seconds), timeout=timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise ScrapeError(f"Request timed out after {self.timeout_ms}ms") from exc

        if not response.is_success:
            raise ScrapeError(f"HTTP error! status: {response.status_code}")
        logger.debug(
            f"Fetched {url} ({response.status_code}) in {int((time.monotonic() - started) * 1000)}ms"
        )
        return response.text

    async def _get(self, url: str, timeout_seconds: float) -> httpx.Response:
        headers = {"User-Agent": web_utils.USER_AGENT}
        if self._http_client is not None:
            return await self._http_client.get(url, headers=headers, follow_redirects=True)
        async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True) as client:
            return await client.get(url, headers=headers)
