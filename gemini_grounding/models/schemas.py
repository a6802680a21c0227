from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from gemini_grounding.models.interfaces import ContentMode

MAX_BATCH_QUERIES = 10


# --- Requests ---


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    include_search_results: bool = False
    max_results: int = Field(default=5, ge=1)

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Query parameter is required and must be a non-empty string")
        return value


class BatchSearchRequest(BaseModel):
    queries: list[str] = Field(min_length=1, max_length=MAX_BATCH_QUERIES)
    scrape_content: bool = True
    content_mode: ContentMode = "full"
    max_content_length: int = Field(default=10000, gt=0)

    @field_validator("queries")
    @classmethod
    def _queries_not_blank(cls, value: list[str]) -> list[str]:
        if any(not q.strip() for q in value):
            raise ValueError("Queries must be non-empty strings")
        return value


class ScrapeRequest(BaseModel):
    url: str = Field(min_length=1)
    content_mode: ContentMode = "full"
    max_content_length: int = Field(default=10000, gt=0)
