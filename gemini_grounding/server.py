"""MCP server exposing grounded search, batch search and page scraping.

Run:
    python -m gemini_grounding.server
"""

from __future__ import annotations

import sys

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import ValidationError

from gemini_grounding.agents.orchestrator import SearchOrchestrator
from gemini_grounding.models.interfaces import ContentMode, ErrorResponse, SearchResult
from gemini_grounding.models.schemas import BatchSearchRequest, ScrapeRequest, SearchRequest
from gemini_grounding.services import logger as _logging  # noqa: F401  configures sinks
from gemini_grounding.services.oauth2 import AuthenticationMissingError
from gemini_grounding.tools.formatter import render_batch_results, render_search_result

mcp = FastMCP("gemini-grounding")

_orchestrator: SearchOrchestrator | None = None


def get_orchestrator() -> SearchOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = SearchOrchestrator.from_settings()
    return _orchestrator


def set_orchestrator(orchestrator: SearchOrchestrator | None) -> None:
    global _orchestrator
    _orchestrator = orchestrator


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(err.get("msg", "invalid value") for err in exc.errors())


@mcp.tool()
async def google_search(query: str, include_search_results: bool = False, max_results: int = 5) -> str:
    """Search the web with Gemini's Google Search grounding.

    Returns an answer with numbered [n] citation markers followed by the
    cited sources.

    Args:
        query: The search query
        include_search_results: Also list the individual sources with snippets
        max_results: Upper bound on listed sources (only with include_search_results)
    """
    try:
        request = SearchRequest(
            query=query,
            include_search_results=include_search_results,
            max_results=max_results,
        )
    except ValidationError as exc:
        raise ToolError(_validation_message(exc)) from exc

    orchestrator = get_orchestrator()
    if not request.include_search_results:
        result = await orchestrator.search(request.query)
        if isinstance(result, ErrorResponse):
            raise ToolError(f"Search failed: {result.message}")
        return render_search_result(result)

    try:
        details = await orchestrator.search_with_details(request.query)
    except Exception as exc:
        logger.error(f"Search error for {request.query!r}: {exc}")
        raise ToolError(f"Search failed: {exc}") from exc

    output = render_search_result(
        SearchResult(query=request.query, summary=details.summary, citations=details.citations)
    )
    listed = details.search_results[: request.max_results]
    if listed:
        output += "\nSearch Results:\n"
        for position, item in enumerate(listed, start=1):
            output += f"{position}. {item.title}\n   {item.url}\n"
            if item.snippet:
                output += f"   {item.snippet}\n"
    return output


@mcp.tool()
async def google_search_batch(
    queries: list[str],
    scrape_content: bool = True,
    content_mode: ContentMode = "full",
    max_content_length: int = 10000,
) -> str:
    """Run several grounded searches and optionally scrape every cited source.

    Args:
        queries: 1-10 search queries, processed in parallel waves
        scrape_content: Fetch and extract the content of each source URL
        content_mode: "excerpt", "summary" or "full"
        max_content_length: Character cap for "full" mode
    """
    try:
        request = BatchSearchRequest(
            queries=queries,
            scrape_content=scrape_content,
            content_mode=content_mode,
            max_content_length=max_content_length,
        )
    except ValidationError as exc:
        raise ToolError(_validation_message(exc)) from exc

    response = await get_orchestrator().batch_search(
        request.queries,
        scrape_content=request.scrape_content,
        content_mode=request.content_mode,
        max_content_length=request.max_content_length,
    )
    return render_batch_results(response)


@mcp.tool()
async def scrape_url(url: str, content_mode: ContentMode = "full", max_content_length: int = 10000) -> str:
    """Fetch a page and return its main content as Markdown.

    Args:
        url: Absolute http(s) URL
        content_mode: "excerpt", "summary" or "full"
        max_content_length: Character cap for "full" mode
    """
    try:
        request = ScrapeRequest(url=url, content_mode=content_mode, max_content_length=max_content_length)
    except ValidationError as exc:
        raise ToolError(_validation_message(exc)) from exc

    result = await get_orchestrator().scrape_url(
        request.url,
        content_mode=request.content_mode,
        max_content_length=request.max_content_length,
    )
    if result.error:
        raise ToolError(f"Failed to scrape {result.url}: {result.error}")
    return f"# {result.title}\n\nURL: {result.url}\n\n{result.content or ''}"


def main() -> None:
    try:
        get_orchestrator()
    except AuthenticationMissingError as exc:
        logger.error(str(exc))
        sys.exit(1)

    logger.info("Gemini grounding MCP server running on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
