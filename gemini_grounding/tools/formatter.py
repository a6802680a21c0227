from __future__ import annotations

from typing import Any

from gemini_grounding.models.interfaces import (
    BatchSearchResponse,
    BatchSearchResult,
    Citation,
    ErrorResponse,
    SearchResult,
)
from gemini_grounding.tools.citations import MAX_SEARCH_RESULTS

PREVIEW_CHARS = 200
RULE = "-" * 50


def format_search_result(text: str | None, citations: list[Citation] | None, query: str) -> SearchResult:
    if not text:
        return SearchResult(query=query, summary=f'No results found for query: "{query}"')
    return SearchResult(query=query, summary=text, citations=list(citations or []))


def format_batch_results(results: list[BatchSearchResult]) -> BatchSearchResponse:
    return BatchSearchResponse(total_queries=len(results), results=list(results))


def format_error(error: BaseException, context: Any) -> ErrorResponse:
    return ErrorResponse(message=str(error) or "An unknown error occurred", context=context)


def _render_citations(citations: list[Citation]) -> str:
    return "".join(f"[{c.number}] {c.title}\n    {c.url}\n" for c in citations)


def render_search_result(result: SearchResult) -> str:
    output = f'Query: "{result.query}"\n\n{result.summary}\n'
    if result.citations:
        output += "\nCitations:\n" + _render_citations(result.citations)
    return output


def render_batch_results(response: BatchSearchResponse) -> str:
    noun = "query" if response.total_queries == 1 else "queries"
    lines: list[str] = [f"# Batch Search Results ({response.total_queries} {noun})\n", "=" * 50 + "\n"]

    for index, result in enumerate(response.results, start=1):
        lines.append(f'## Query {index}: "{result.query}"\n')

        if result.error:
            lines.append(f"❌ **Error**: {result.error}\n")
            lines.append(RULE + "\n")
            continue

        if result.summary:
            lines.append(f"### Summary\n\n{result.summary}\n")

        if result.citations:
            lines.append("### Citations\n" + _render_citations(result.citations))

        if result.search_results:
            count = result.search_result_count or len(result.search_results)
            target = result.target_result_count or MAX_SEARCH_RESULTS
            block = [f"### Search Results ({count}/{target})\n"]
            for position, item in enumerate(result.search_results, start=1):
                entry = f"**{position}. {item.title}**\n- URL: {item.url}\n"
                if item.snippet:
                    entry += f"- Snippet: {item.snippet}\n"
                block.append(entry)
            lines.append("\n".join(block))

        if result.scraped_content:
            block = ["### Scraped Content\n"]
            succeeded = failed = 0
            for content in result.scraped_content:
                if content.error:
                    failed += 1
                    block.append(
                        f"#### ❌ Failed: {content.title}\n- URL: {content.url}\n- Error: {content.error}\n"
                    )
                    continue
                succeeded += 1
                entry = f"#### ✅ {content.title}\n- URL: {content.url}\n"
                if content.content:
                    preview = content.content[:PREVIEW_CHARS]
                    ellipsis = "..." if len(content.content) > PREVIEW_CHARS else ""
                    entry += f"- Content Preview: {preview}{ellipsis}\n"
                    entry += f"- Full Length: {len(content.content)} characters\n"
                block.append(entry)
            block.append(f"📊 **Scraping Stats**: {succeeded} succeeded, {failed} failed\n")
            lines.append("\n".join(block))

        lines.append(RULE + "\n")

    return "\n".join(lines)
