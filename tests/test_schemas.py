from __future__ import annotations

import pytest
from pydantic import ValidationError

from gemini_grounding.models.schemas import (
    MAX_BATCH_QUERIES,
    BatchSearchRequest,
    ScrapeRequest,
    SearchRequest,
)


def test_batch_request_defaults():
    request = BatchSearchRequest(queries=["a"])
    assert request.scrape_content is True
    assert request.content_mode == "full"
    assert request.max_content_length == 10000


@pytest.mark.parametrize(
    "queries",
    [[], ["q"] * (MAX_BATCH_QUERIES + 1), ["ok", "   "]],
)
def test_batch_request_rejects_bad_query_lists(queries):
    with pytest.raises(ValidationError):
        BatchSearchRequest(queries=queries)


def test_batch_request_rejects_unknown_mode_and_bad_length():
    with pytest.raises(ValidationError):
        BatchSearchRequest(queries=["a"], content_mode="headline")
    with pytest.raises(ValidationError):
        BatchSearchRequest(queries=["a"], max_content_length=0)


def test_search_request_requires_non_blank_query():
    with pytest.raises(ValidationError, match="non-empty string"):
        SearchRequest(query="  ")
    assert SearchRequest(query="rust").max_results == 5


def test_scrape_request_requires_url():
    with pytest.raises(ValidationError):
        ScrapeRequest(url="")
