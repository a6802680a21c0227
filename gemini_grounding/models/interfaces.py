from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal


ContentMode = Literal["excerpt", "summary", "full"]
AnswerSource = Literal["sdk", "code_assist"]

CONTENT_MODES: tuple[str, ...] = ("excerpt", "summary", "full")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _get(obj: Any, *names: str) -> Any:
    """Read the first present member of a dict or attribute-style object."""
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, dict):
            if name in obj and obj[name] is not None:
                return obj[name]
        else:
            value = getattr(obj, name, None)
            if value is not None:
                return value
    return None


# --- Grounding metadata ---


@dataclass(slots=True)
class GroundingChunk:
    url: str
    title: str | None = None


@dataclass(slots=True)
class GroundingSupport:
    chunk_indices: list[int] = field(default_factory=list)
    end_index: int | None = None
    segment_start_index: int | None = None
    segment_end_index: int | None = None
    text: str | None = None

    @property
    def insertion_offset(self) -> int | None:
        if self.end_index is not None:
            return self.end_index
        return self.segment_end_index


@dataclass(slots=True)
class GroundingMetadata:
    chunks: list[GroundingChunk | None] = field(default_factory=list)
    supports: list[GroundingSupport] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> GroundingMetadata:
        """Build from the camelCase JSON shape of the Code Assist API."""
        return cls._build(
            raw,
            chunks_keys=("groundingChunks", "grounding_chunks"),
            supports_keys=("groundingSupports", "grounding_supports"),
            indices_keys=("groundingChunkIndices", "grounding_chunk_indices"),
            end_keys=("endIndex", "end_index"),
            start_keys=("startIndex", "start_index"),
        )

    @classmethod
    def from_sdk(cls, raw: Any) -> GroundingMetadata:
        """Build from google-genai response objects (snake_case attributes)."""
        return cls._build(
            raw,
            chunks_keys=("grounding_chunks",),
            supports_keys=("grounding_supports",),
            indices_keys=("grounding_chunk_indices",),
            end_keys=("end_index",),
            start_keys=("start_index",),
        )

    @classmethod
    def _build(
        cls,
        raw: Any,
        *,
        chunks_keys: tuple[str, ...],
        supports_keys: tuple[str, ...],
        indices_keys: tuple[str, ...],
        end_keys: tuple[str, ...],
        start_keys: tuple[str, ...],
    ) -> GroundingMetadata:
        if raw is None:
            return cls()

        chunks: list[GroundingChunk | None] = []
        raw_chunks = _get(raw, *chunks_keys)
        if isinstance(raw_chunks, (list, tuple)):
            for raw_chunk in raw_chunks:
                web = _get(raw_chunk, "web")
                uri = _get(web, "uri")
                if isinstance(uri, str) and uri:
                    title = _get(web, "title")
                    chunks.append(
                        GroundingChunk(url=uri, title=title if isinstance(title, str) else None)
                    )
                else:
                    # Keep the slot so chunk indices stay aligned.
                    chunks.append(None)

        supports: list[GroundingSupport] = []
        raw_supports = _get(raw, *supports_keys)
        if isinstance(raw_supports, (list, tuple)):
            for raw_support in raw_supports:
                raw_indices = _get(raw_support, *indices_keys)
                indices: list[int] = []
                if isinstance(raw_indices, (list, tuple)):
                    for value in raw_indices:
                        index = _as_int(value)
                        if index is not None and index >= 0:
                            indices.append(index)
                segment = _get(raw_support, "segment")
                text = _get(segment, "text")
                supports.append(
                    GroundingSupport(
                        chunk_indices=indices,
                        end_index=_as_int(_get(raw_support, *end_keys)),
                        segment_start_index=_as_int(_get(segment, *start_keys)),
                        segment_end_index=_as_int(_get(segment, *end_keys)),
                        text=text if isinstance(text, str) else None,
                    )
                )

        return cls(chunks=chunks, supports=supports)

    def chunk(self, index: int) -> GroundingChunk | None:
        if 0 <= index < len(self.chunks):
            return self.chunks[index]
        return None


@dataclass(slots=True)
class GroundedAnswer:
    """Normalized answer produced by either transport path."""

    text: str
    metadata: GroundingMetadata
    source: AnswerSource


# --- Search results ---


@dataclass(slots=True)
class Citation:
    number: int
    title: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"number": self.number, "title": self.title, "url": self.url}


@dataclass(slots=True)
class SearchResultDetail:
    title: str
    url: str
    snippet: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "url": self.url, "snippet": self.snippet}


@dataclass(slots=True)
class SearchResult:
    query: str
    summary: str
    citations: list[Citation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "summary": self.summary,
            "citations": [c.to_dict() for c in self.citations],
        }


@dataclass(slots=True)
class ErrorResponse:
    message: str
    context: Any = None
    timestamp: str = field(default_factory=utc_now_iso)
    error: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True)
class SearchWithDetails:
    summary: str
    search_results: list[SearchResultDetail]
    citations: list[Citation]


# --- Scraping ---


@dataclass(frozen=True, slots=True)
class ScrapedContent:
    url: str
    title: str
    content: str | None
    scraped_at: str = field(default_factory=utc_now_iso)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "scrapedAt": self.scraped_at,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class CacheEntry:
    content: ScrapedContent
    timestamp: float


# --- OAuth ---


@dataclass(slots=True)
class OAuth2Token:
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expiry_date: int = 0  # epoch millis

    @classmethod
    def from_dict(cls, raw: Any) -> OAuth2Token | None:
        if not isinstance(raw, dict):
            return None
        access_token = raw.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            return None
        refresh_token = raw.get("refresh_token")
        token_type = raw.get("token_type")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else "",
            token_type=token_type if isinstance(token_type, str) and token_type else "Bearer",
            expiry_date=_as_int(raw.get("expiry_date")) or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expiry_date": self.expiry_date,
        }


# --- Batch ---


@dataclass(slots=True)
class BatchSearchResult:
    query: str
    summary: str | None = None
    citations: list[Citation] = field(default_factory=list)
    search_results: list[SearchResultDetail] = field(default_factory=list)
    scraped_content: list[ScrapedContent] = field(default_factory=list)
    error: str | None = None
    search_result_count: int | None = None
    target_result_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "summary": self.summary,
            "citations": [c.to_dict() for c in self.citations],
            "searchResults": [r.to_dict() for r in self.search_results],
            "scrapedContent": [s.to_dict() for s in self.scraped_content],
            "error": self.error,
            "searchResultCount": self.search_result_count,
            "targetResultCount": self.target_result_count,
        }


@dataclass(slots=True)
class BatchSearchResponse:
    total_queries: int
    results: list[BatchSearchResult]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalQueries": self.total_queries,
            "results": [r.to_dict() for r in self.results],
        }


# --- Structured output ---


@dataclass(slots=True)
class TextSegment:
    text: str
    citation_ids: list[int]
    start_index: int
    end_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "citationIds": list(self.citation_ids),
            "startIndex": self.start_index,
            "endIndex": self.end_index,
        }


@dataclass(slots=True)
class EnhancedCitation:
    number: int
    title: str
    url: str
    context: str = ""
    confidence: float = 0.9
    excerpt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "context": self.context,
            "confidence": self.confidence,
        }
        if self.excerpt is not None:
            payload["excerpt"] = self.excerpt
        return payload


@dataclass(slots=True)
class StructuredSearchResult:
    query: str
    summary: str
    citations: list[EnhancedCitation]
    segments: list[TextSegment]
    citation_map: dict[int, EnhancedCitation]
    search_results: list[SearchResultDetail] | None = None
    scraped_content: list[ScrapedContent] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def segments_for(self, citation_number: int) -> list[TextSegment]:
        return [s for s in self.segments if citation_number in s.citation_ids]

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "summary": self.summary,
            "citations": [c.to_dict() for c in self.citations],
            "structured": {
                "segments": [s.to_dict() for s in self.segments],
                "citationMap": {
                    str(number): c.to_dict() for number, c in self.citation_map.items()
                },
            },
            "searchResults": (
                [r.to_dict() for r in self.search_results]
                if self.search_results is not None
                else None
            ),
            "scrapedContent": (
                [s.to_dict() for s in self.scraped_content]
                if self.scraped_content is not None
                else None
            ),
            "metadata": dict(self.metadata),
        }
