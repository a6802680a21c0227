"""Citation reconciliation for grounded answers.

Turns answer text plus grounding metadata into numbered ``[n]`` markers, a
deduplicated source list and a segment index (text <-> citation numbers).
Nothing here raises on malformed metadata: it degrades to "no citations".
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from gemini_grounding.models.interfaces import (
    Citation,
    EnhancedCitation,
    GroundingMetadata,
    GroundingSupport,
    ScrapedContent,
    SearchResult,
    SearchResultDetail,
    StructuredSearchResult,
    TextSegment,
)

MAX_SEARCH_RESULTS = 5
CONTEXT_MAX_CHARS = 200
EXCERPT_MAX_CHARS = 300
DEFAULT_CONFIDENCE = 0.9

CITATION_PATTERN = re.compile(r"\[(\d+)\]")
_SENTENCE_TAIL = re.compile(r"[^.!?]*[.!?]")
_SENTENCE_END = re.compile(r"[.!?]+(?:\s*\[\d+\])+|[.!?]+(?=\s|$)")
_SEPARATOR = re.compile(r"\s*")


def has_citation_markers(text: str) -> bool:
    return bool(text) and CITATION_PATTERN.search(text) is not None


def strip_citation_markers(text: str) -> str:
    return CITATION_PATTERN.sub("", text or "")


def _marker_for(
    chunk_indices: Sequence[int],
    chunk_numbers: Mapping[int, int] | None,
) -> str:
    numbers: list[int] = []
    for index in chunk_indices:
        if chunk_numbers is None:
            numbers.append(index + 1)
            continue
        number = chunk_numbers.get(index)
        if number is None or number in numbers:
            continue
        numbers.append(number)
    return "".join(f"[{number}]" for number in numbers)


def insert_citations(
    text: str,
    supports: Sequence[GroundingSupport] | None,
    chunk_numbers: Mapping[int, int] | None = None,
) -> str:
    """Splice ``[n]`` markers into ``text`` at each support's end offset.

    Supports are visited by descending offset so that no insertion shifts an
    offset that is still pending; the first support to claim an offset wins
    and later ones at the same offset are dropped. Supports without a usable
    offset (missing or zero) are skipped.

    ``chunk_numbers`` maps chunk index -> citation number. Without it the
    marker number is ``chunk_index + 1``.
    """
    if not text or not supports:
        return text

    # sorted() stays stable with reverse=True, so equal offsets keep input order
    ordered = sorted(
        supports,
        key=lambda support: support.insertion_offset or 0,
        reverse=True,
    )

    edits: list[tuple[int, str]] = []
    claimed: set[int] = set()
    for support in ordered:
        if not support.chunk_indices:
            continue
        position = support.insertion_offset
        if not position or position <= 0:
            continue
        position = min(position, len(text))
        if position in claimed:
            continue
        marker = _marker_for(support.chunk_indices, chunk_numbers)
        if not marker:
            continue
        claimed.add(position)
        edits.append((position, marker))

    if not edits:
        return text

    # edits are in descending position order; build the output back to front
    pieces: list[str] = []
    cursor = len(text)
    for position, marker in edits:
        pieces.append(text[position:cursor])
        pieces.append(marker)
        cursor = position
    pieces.append(text[:cursor])
    return "".join(reversed(pieces))


def extract_citations(
    metadata: GroundingMetadata | None,
) -> tuple[list[Citation], dict[int, int]]:
    """Number the cited sources densely from 1 in chunk order.

    Returns the citations and a chunk index -> citation number map. A URL that
    appears in several chunks keeps the number it was first given.
    """
    if metadata is None:
        return [], {}

    citations: list[Citation] = []
    numbers: dict[int, int] = {}
    by_url: dict[str, int] = {}
    for index, chunk in enumerate(metadata.chunks):
        if chunk is None or not chunk.url:
            continue
        number = by_url.get(chunk.url)
        if number is None:
            number = len(citations) + 1
            by_url[chunk.url] = number
            citations.append(
                Citation(number=number, title=chunk.title or "Untitled", url=chunk.url)
            )
        numbers[index] = number
    return citations, numbers


def extract_search_results(metadata: GroundingMetadata | None) -> list[SearchResultDetail]:
    """Unique sources in first-support order, capped at ``MAX_SEARCH_RESULTS``.

    Only the first chunk index of each support is considered, so a support that
    cites several chunks contributes at most one source.
    """
    if metadata is None or not metadata.supports:
        return []

    results: list[SearchResultDetail] = []
    seen: set[str] = set()
    for support in metadata.supports:
        if not support.chunk_indices:
            continue
        chunk = metadata.chunk(support.chunk_indices[0])
        if chunk is None or chunk.url in seen:
            continue
        seen.add(chunk.url)
        results.append(
            SearchResultDetail(
                title=chunk.title or "Untitled",
                url=chunk.url,
                snippet=support.text or "",
            )
        )

    return results[:MAX_SEARCH_RESULTS]


def parse_text_with_citations(text: str) -> tuple[list[TextSegment], set[int]]:
    """Split annotated text into segments tagged with the citations they carry.

    Each marker opens (or extends) a citation segment that runs to the end of
    the sentence following it. Adjacent citation segments merge, so a cluster
    like ``[1][2]`` becomes one segment. Offsets are positions in ``text``.
    Whitespace-only gaps are folded into a neighbouring segment, so the
    segments always tile ``text`` exactly.
    """
    segments: list[TextSegment] = []
    citation_numbers: set[int] = set()
    if not text:
        return segments, citation_numbers

    last_index = 0
    for match in CITATION_PATTERN.finditer(text):
        number = int(match.group(1))
        citation_numbers.add(number)
        start = match.start()

        if start < last_index:
            # marker sits inside the sentence the previous citation already took
            previous = segments[-1]
            if number not in previous.citation_ids:
                previous.citation_ids.append(number)
            continue

        if start > last_index:
            gap = text[last_index:start]
            if gap.strip():
                segments.append(TextSegment(gap, [], last_index, start))
            elif segments:
                _extend(segments[-1], gap, start)
            else:
                start = last_index

        end = match.end()
        sentence = _SENTENCE_TAIL.match(text, end)
        if sentence:
            end = sentence.end()

        previous = segments[-1] if segments else None
        if previous is not None and previous.end_index == start and previous.citation_ids:
            _extend(previous, text[start:end], end)
            if number not in previous.citation_ids:
                previous.citation_ids.append(number)
        else:
            segments.append(TextSegment(text[start:end], [number], start, end))
        last_index = end

    if last_index < len(text):
        remainder = text[last_index:]
        if remainder.strip():
            segments.append(TextSegment(remainder, [], last_index, len(text)))
        elif segments:
            _extend(segments[-1], remainder, len(text))

    return segments, citation_numbers


def _extend(segment: TextSegment, text: str, end_index: int) -> None:
    segment.text += text
    segment.end_index = end_index


def _split_sentences(text: str) -> list[list[str]]:
    """``[sentence, separator]`` pairs that concatenate back to ``text``.

    A sentence ends at ``.``, ``!`` or ``?`` followed by a marker run,
    whitespace or the end of the text, so ``3.12`` stays whole.
    """
    pieces: list[list[str]] = []
    position = 0
    for match in _SENTENCE_END.finditer(text):
        end = match.end()
        gap = _SEPARATOR.match(text, end).end()
        pieces.append([text[position:end], text[end:gap]])
        position = gap
    if position < len(text):
        pieces.append([text[position:], ""])
    return pieces


def remove_duplicate_sentences(text: str) -> str:
    """Collapse sentences repeated with different trailing citation markers.

    Sentences compare equal once markers, case and whitespace are ignored. The
    first occurrence keeps its position and its separator; it is swapped for a
    later duplicate only when the later one carries markers and the kept one
    does not. Everything else is left as written.
    """
    if not text:
        return text

    kept: list[list[str]] = []
    position_by_key: dict[str, int] = {}
    for sentence, separator in _split_sentences(text):
        key = " ".join(strip_citation_markers(sentence).split()).lower()
        if not key:
            # a bare marker run; attach it to the sentence before it
            if kept:
                kept[-1][0] += kept[-1][1] + sentence
                kept[-1][1] = separator
            else:
                kept.append([sentence, separator])
            continue
        position = position_by_key.get(key)
        if position is None:
            position_by_key[key] = len(kept)
            kept.append([sentence, separator])
        elif not has_citation_markers(kept[position][0]) and has_citation_markers(sentence):
            kept[position][0] = sentence

    body = "".join(sentence + separator for sentence, separator in kept).rstrip()
    return body + text[len(text.rstrip()) :]


def create_structured_search_result(
    result: SearchResult,
    *,
    search_results: list[SearchResultDetail] | None = None,
    scraped_content: Iterable[ScrapedContent] | None = None,
    target_result_count: int | None = None,
    processing_time_ms: int | None = None,
) -> StructuredSearchResult:
    """Attach segment context (and scraped excerpts) to each cited source."""
    segments, citation_numbers = parse_text_with_citations(result.summary)
    scraped = list(scraped_content) if scraped_content is not None else None

    citation_map: dict[int, EnhancedCitation] = {}
    for citation in result.citations:
        if citation.number not in citation_numbers:
            continue
        context = " ".join(
            segment.text for segment in segments if citation.number in segment.citation_ids
        )
        enhanced = EnhancedCitation(
            number=citation.number,
            title=citation.title,
            url=citation.url,
            context=context[:CONTEXT_MAX_CHARS],
            confidence=DEFAULT_CONFIDENCE,
        )
        if scraped:
            match = next((item for item in scraped if item.url == citation.url), None)
            if match is not None and match.content:
                enhanced.excerpt = match.content[:EXCERPT_MAX_CHARS] + (
                    "..." if len(match.content) > EXCERPT_MAX_CHARS else ""
                )
        citation_map[citation.number] = enhanced

    citations = list(citation_map.values())
    return StructuredSearchResult(
        query=result.query,
        summary=result.summary,
        citations=citations,
        segments=segments,
        citation_map=citation_map,
        search_results=search_results,
        scraped_content=scraped,
        metadata={
            "searchResultCount": len(search_results) if search_results is not None else None,
            "targetResultCount": target_result_count,
            "processingTime": processing_time_ms,
            "citationCount": len(citations),
        },
    )
