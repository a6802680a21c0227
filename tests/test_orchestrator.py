from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from gemini_grounding.agents.orchestrator import SearchOrchestrator
from gemini_grounding.models.interfaces import (
    Citation,
    ScrapedContent,
    SearchResultDetail,
    SearchWithDetails,
)


def _details(query: str, *sources: str) -> SearchWithDetails:
    return SearchWithDetails(
        summary=f"Answer for {query}.[1]",
        search_results=[SearchResultDetail(title=s, url=f"https://{s}", snippet="") for s in sources],
        citations=[Citation(number=i, title=s, url=f"https://{s}") for i, s in enumerate(sources, start=1)],
    )


@pytest.mark.asyncio
async def test_seven_queries_run_in_two_waves_with_one_delay():
    events: list[str] = []

    async def search_with_details(query: str) -> SearchWithDetails:
        events.append(query)
        return _details(query)

    async def sleep(seconds: float) -> None:
        events.append(f"sleep:{seconds}")

    client = SimpleNamespace(search_with_details=search_with_details)
    scraper = SimpleNamespace(scrape_urls=AsyncMock(return_value=[]))
    orchestrator = SearchOrchestrator(client, scraper, batch_size=5, batch_delay_ms=100, sleep=sleep)
    queries = [f"q{i}" for i in range(7)]

    response = await orchestrator.batch_search(queries, scrape_content=False)

    assert events == ["q0", "q1", "q2", "q3", "q4", "sleep:0.1", "q5", "q6"]
    assert response.total_queries == 7
    assert [r.query for r in response.results] == queries
    scraper.scrape_urls.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_query_does_not_abort_siblings():
    async def search_with_details(query: str) -> SearchWithDetails:
        if query == "bad":
            raise RuntimeError("upstream exploded")
        return _details(query, "a.example")

    client = SimpleNamespace(search_with_details=search_with_details)
    scraper = SimpleNamespace(scrape_urls=AsyncMock(return_value=[]))
    orchestrator = SearchOrchestrator(client, scraper, sleep=AsyncMock())

    response = await orchestrator.batch_search(["good", "bad", "also good"])

    good, bad, also_good = response.results
    assert bad.error == "upstream exploded"
    assert bad.summary is None
    assert good.error is None
    assert good.summary == "Answer for good.[1]"
    assert also_good.search_result_count == 1
    assert also_good.target_result_count == 5


@pytest.mark.asyncio
async def test_sources_are_scraped_with_requested_mode():
    scraped = [ScrapedContent(url="https://a.example", title="A", content="body")]
    client = SimpleNamespace(search_with_details=AsyncMock(return_value=_details("q", "a.example")))
    scraper = SimpleNamespace(scrape_urls=AsyncMock(return_value=scraped))
    orchestrator = SearchOrchestrator(client, scraper, sleep=AsyncMock())

    response = await orchestrator.batch_search(["q"], content_mode="summary", max_content_length=2000)

    scraper.scrape_urls.assert_awaited_once_with(
        ["https://a.example"], content_mode="summary", max_content_length=2000
    )
    assert response.results[0].scraped_content == scraped
    assert response.to_dict()["results"][0]["scrapedContent"][0]["url"] == "https://a.example"


@pytest.mark.asyncio
async def test_search_and_scrape_delegate():
    client = SimpleNamespace(
        search=AsyncMock(return_value="result"),
        search_with_details=AsyncMock(return_value="details"),
    )
    scraper = SimpleNamespace(scrape_url=AsyncMock(return_value="page"))
    orchestrator = SearchOrchestrator(client, scraper)

    assert await orchestrator.search("q") == "result"
    assert await orchestrator.search_with_details("q") == "details"
    client.search_with_details.assert_awaited_once_with("q")
    assert await orchestrator.scrape_url("https://a.example", content_mode="excerpt") == "page"
    scraper.scrape_url.assert_awaited_once_with(
        "https://a.example", content_mode="excerpt", max_content_length=None
    )


@pytest.mark.asyncio
async def test_structured_search_indexes_citations():
    details = SearchWithDetails(
        summary="X[1].[2] Y.",
        search_results=[SearchResultDetail(title="A", url="https://a", snippet="")],
        citations=[
            Citation(number=1, title="A", url="https://a"),
            Citation(number=2, title="B", url="https://b"),
        ],
    )
    client = SimpleNamespace(search_with_details=AsyncMock(return_value=details))
    scraper = SimpleNamespace(
        scrape_urls=AsyncMock(return_value=[ScrapedContent(url="https://a", title="A", content="excerpt")])
    )
    orchestrator = SearchOrchestrator(client, scraper)

    structured = await orchestrator.structured_search("q", scrape_content=True)

    assert set(structured.citation_map) == {1, 2}
    assert structured.citation_map[1].excerpt == "excerpt"
    assert structured.metadata["searchResultCount"] == 1
    assert structured.metadata["targetResultCount"] == 5
    scraper.scrape_urls.assert_awaited_once_with(["https://a"], content_mode="excerpt")
