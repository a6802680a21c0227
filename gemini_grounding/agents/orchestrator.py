"""Search orchestration: grounded search, citation handling and source scraping."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from loguru import logger

from gemini_grounding.config import settings
from gemini_grounding.llm_client import GeminiClient
from gemini_grounding.models.interfaces import (
    BatchSearchResponse,
    BatchSearchResult,
    ContentMode,
    ErrorResponse,
    ScrapedContent,
    SearchResult,
    SearchWithDetails,
    StructuredSearchResult,
)
from gemini_grounding.services.auth import AuthConfig
from gemini_grounding.services.logger import log_event
from gemini_grounding.tools.citations import MAX_SEARCH_RESULTS, create_structured_search_result
from gemini_grounding.tools.formatter import format_batch_results
from gemini_grounding.tools.scraper import ContentScraper

Sleep = Callable[[float], Awaitable[None]]


class SearchOrchestrator:
    def __init__(
        self,
        client: GeminiClient,
        scraper: ContentScraper,
        *,
        batch_size: int | None = None,
        batch_delay_ms: int | None = None,
        sleep: Sleep | None = None,
    ):
        self.client = client
        self.scraper = scraper
        self.batch_size = max(int(batch_size or settings.batch_size), 1)
        self.batch_delay_ms = max(
            int(batch_delay_ms if batch_delay_ms is not None else settings.rate_limit_delay), 0
        )
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls) -> SearchOrchestrator:
        """Build the process-wide graph; raises if no credential is configured."""
        client = GeminiClient(AuthConfig())
        scraper = ContentScraper(summarizer=client)
        return cls(client, scraper)

    async def search(self, query: str) -> SearchResult | ErrorResponse:
        return await self.client.search(query)

    async def search_with_details(self, query: str) -> SearchWithDetails:
        return await self.client.search_with_details(query)

    async def scrape_url(
        self,
        url: str,
        *,
        content_mode: ContentMode = "full",
        max_content_length: int | None = None,
    ) -> ScrapedContent:
        return await self.scraper.scrape_url(
            url,
            content_mode=content_mode,
            max_content_length=max_content_length,
        )

    async def _process_query(
        self,
        query: str,
        *,
        scrape_content: bool,
        content_mode: ContentMode,
        max_content_length: int | None,
    ) -> BatchSearchResult:
        try:
            details = await self.client.search_with_details(query)
            urls = [result.url for result in details.search_results]
            scraped: list[ScrapedContent] = []
            if scrape_content and urls:
                scraped = await self.scraper.scrape_urls(
                    urls,
                    content_mode=content_mode,
                    max_content_length=max_content_length,
                )
        except Exception as exc:
            logger.error(f'Error processing query "{query}": {exc}')
            return BatchSearchResult(query=query, error=str(exc) or type(exc).__name__)

        return BatchSearchResult(
            query=query,
            summary=details.summary,
            citations=details.citations,
            search_results=details.search_results,
            scraped_content=scraped,
            search_result_count=len(details.search_results),
            target_result_count=MAX_SEARCH_RESULTS,
        )

    async def batch_search(
        self,
        queries: list[str],
        *,
        scrape_content: bool = True,
        content_mode: ContentMode = "full",
        max_content_length: int | None = None,
    ) -> BatchSearchResponse:
        """Run queries in waves of ``batch_size`` with a pause between waves.

        A failing query yields an error entry; it never aborts its siblings.
        """
        started = time.monotonic()
        results: list[BatchSearchResult] = []
        for start in range(0, len(queries), self.batch_size):
            wave = queries[start : start + self.batch_size]
            wave_results = await asyncio.gather(
                *(
                    self._process_query(
                        query,
                        scrape_content=scrape_content,
                        content_mode=content_mode,
                        max_content_length=max_content_length,
                    )
                    for query in wave
                )
            )
            results.extend(wave_results)

            if start + self.batch_size < len(queries):
                await self._sleep(self.batch_delay_ms / 1000.0)

        log_event(
            "batch_search",
            f"Completed {len(queries)} queries",
            failed=sum(1 for r in results if r.error),
            scrape_content=scrape_content,
            content_mode=content_mode,
            runtime_ms=int((time.monotonic() - started) * 1000),
        )
        return format_batch_results(results)

    async def structured_search(
        self,
        query: str,
        *,
        scrape_content: bool = False,
        content_mode: ContentMode = "excerpt",
    ) -> StructuredSearchResult:
        """Search and return the summary as a citation-indexed segment structure."""
        started = time.monotonic()
        details = await self.client.search_with_details(query)
        scraped: list[ScrapedContent] | None = None
        if scrape_content and details.search_results:
            scraped = await self.scraper.scrape_urls(
                [result.url for result in details.search_results],
                content_mode=content_mode,
            )
        return create_structured_search_result(
            SearchResult(query=query, summary=details.summary, citations=details.citations),
            search_results=details.search_results,
            scraped_content=scraped,
            target_result_count=MAX_SEARCH_RESULTS,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )
