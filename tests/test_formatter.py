from __future__ import annotations

from gemini_grounding.models.interfaces import (
    BatchSearchResult,
    Citation,
    ScrapedContent,
    SearchResult,
    SearchResultDetail,
)
from gemini_grounding.tools.formatter import (
    format_batch_results,
    format_error,
    format_search_result,
    render_batch_results,
    render_search_result,
)


def test_format_search_result_handles_empty_text():
    result = format_search_result("", [Citation(1, "A", "https://a")], "nothing")
    assert result == SearchResult(query="nothing", summary='No results found for query: "nothing"')


def test_format_error_defaults_message():
    error = format_error(ValueError(), {"query": "q"})
    assert error.message == "An unknown error occurred"
    assert error.context == {"query": "q"}
    assert error.timestamp


def test_render_search_result_lists_citations():
    text = render_search_result(
        SearchResult(query="q", summary="Answer.[1]", citations=[Citation(1, "A", "https://a")])
    )
    assert text.startswith('Query: "q"\n\nAnswer.[1]\n')
    assert "Citations:\n[1] A\n    https://a\n" in text


def test_render_batch_results_covers_errors_sources_and_scrapes():
    response = format_batch_results(
        [
            BatchSearchResult(
                query="good",
                summary="Answer.[1]",
                citations=[Citation(1, "A", "https://a")],
                search_results=[SearchResultDetail("A", "https://a", "snippet a")],
                scraped_content=[
                    ScrapedContent(url="https://a", title="A", content="x" * 250),
                    ScrapedContent(url="https://b", title="Error", content=None, error="timeout"),
                ],
                search_result_count=1,
                target_result_count=5,
            ),
            BatchSearchResult(query="bad", error="boom"),
        ]
    )

    text = render_batch_results(response)

    assert text.startswith("# Batch Search Results (2 queries)")
    assert '## Query 1: "good"' in text
    assert "### Search Results (1/5)" in text
    assert "- Snippet: snippet a" in text
    assert "#### ✅ A" in text
    assert "- Content Preview: " + "x" * 200 + "...\n" in text
    assert "- Full Length: 250 characters" in text
    assert "#### ❌ Failed: Error" in text
    assert "📊 **Scraping Stats**: 1 succeeded, 1 failed" in text
    assert "❌ **Error**: boom" in text


def test_render_batch_results_singular_header():
    text = render_batch_results(format_batch_results([BatchSearchResult(query="only", summary="s")]))
    assert text.startswith("# Batch Search Results (1 query)")
