"""Gemini grounded-search client.

API-key mode talks to Gemini through the google-genai SDK; OAuth mode goes
through the Code Assist HTTP API. Both are normalized into a
``GroundedAnswer`` before citation handling.
"""
from __future__ import annotations

import time
from typing import Any

from google import genai
from google.genai import types
from loguru import logger

from gemini_grounding.config import settings
from gemini_grounding.models.interfaces import (
    Citation,
    ErrorResponse,
    GroundedAnswer,
    GroundingMetadata,
    SearchResult,
    SearchWithDetails,
)
from gemini_grounding.services.auth import AuthConfig
from gemini_grounding.services.code_assist import CodeAssistClient, CodeAssistError
from gemini_grounding.services.logger import log_llm_call
from gemini_grounding.tools.citations import (
    extract_citations,
    extract_search_results,
    has_citation_markers,
    insert_citations,
    remove_duplicate_sentences,
)
from gemini_grounding.tools.formatter import format_error, format_search_result

SUMMARY_PROMPT = (
    "Please provide a concise summary of the following text in about {max_length} "
    "characters. Focus on the main points and key information:\n\n{text}"
)


class SummarizationError(RuntimeError):
    """The model could not produce a summary."""


def _answer_from_sdk(response: Any) -> GroundedAnswer:
    text = getattr(response, "text", None) or ""
    candidates = getattr(response, "candidates", None) or []
    metadata = None
    if candidates:
        metadata = getattr(candidates[0], "grounding_metadata", None)
    return GroundedAnswer(text=text, metadata=GroundingMetadata.from_sdk(metadata), source="sdk")


def _answer_from_code_assist(payload: dict[str, Any]) -> GroundedAnswer:
    candidates = payload.get("candidates")
    if not candidates:
        nested = payload.get("response")
        candidates = nested.get("candidates") if isinstance(nested, dict) else None
    if not candidates or not isinstance(candidates[0], dict):
        raise CodeAssistError("No valid response from Code Assist API")

    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )
    return GroundedAnswer(
        text=text,
        metadata=GroundingMetadata.from_dict(candidate.get("groundingMetadata")),
        source="code_assist",
    )


def annotate_answer(answer: GroundedAnswer) -> tuple[str, list[Citation]]:
    """Return the answer text with citation markers plus the numbered sources."""
    citations, chunk_numbers = extract_citations(answer.metadata)
    text = answer.text
    if has_citation_markers(text):
        # markers were inserted server-side; only collapse the duplicates
        text = remove_duplicate_sentences(text)
    elif answer.metadata.supports:
        text = insert_citations(text, answer.metadata.supports, chunk_numbers)
    return text, citations


class GeminiClient:
    def __init__(
        self,
        auth: AuthConfig,
        *,
        model: str | None = None,
        sdk_client: Any | None = None,
        code_assist: CodeAssistClient | None = None,
    ):
        self.auth = auth
        self.model = model or settings.gemini_model
        self._sdk: Any | None = None
        self.code_assist: CodeAssistClient | None = None

        if auth.is_api_key():
            self._sdk = sdk_client or genai.Client(api_key=auth.get_api_key())
        else:
            self.code_assist = code_assist or CodeAssistClient(auth)

    @property
    def transport(self) -> str:
        return "sdk" if self._sdk is not None else "code_assist"

    async def generate_grounded(self, prompt: str) -> GroundedAnswer:
        """Run a Google-Search-grounded generation on whichever transport is active."""
        started = time.monotonic()
        try:
            if self._sdk is not None:
                response = await self._sdk.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=types.GenerateContentConfig(
                        tools=[types.Tool(google_search=types.GoogleSearch())],
                    ),
                )
                answer = _answer_from_sdk(response)
            else:
                payload = await self.code_assist.generate_content(self.model, prompt)
                answer = _answer_from_code_assist(payload)
        except Exception as exc:
            log_llm_call(
                self.model,
                "generate_grounded",
                duration_ms=int((time.monotonic() - started) * 1000),
                transport=self.transport,
                status="error",
                error=str(exc),
            )
            raise

        log_llm_call(
            self.model,
            "generate_grounded",
            duration_ms=int((time.monotonic() - started) * 1000),
            transport=self.transport,
        )
        return answer

    async def search(self, query: str) -> SearchResult | ErrorResponse:
        try:
            answer = await self.generate_grounded(query)
            summary, citations = annotate_answer(answer)
        except Exception as exc:
            logger.error(f"Search error for {query!r}: {exc}")
            return format_error(exc, {"query": query})

        return format_search_result(summary, citations, query)

    async def search_with_details(self, query: str) -> SearchWithDetails:
        answer = await self.generate_grounded(query)
        summary, citations = annotate_answer(answer)
        return SearchWithDetails(
            summary=summary,
            search_results=extract_search_results(answer.metadata),
            citations=citations,
        )

    async def summarize(self, text: str, max_length: int = 500) -> str:
        prompt = SUMMARY_PROMPT.format(max_length=max_length, text=text)
        started = time.monotonic()
        try:
            if self._sdk is not None:
                response = await self._sdk.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                )
                summary = getattr(response, "text", None) or ""
            else:
                payload = await self.code_assist.generate_content(self.model, prompt, grounded=False)
                summary = _answer_from_code_assist(payload).text
        except Exception as exc:
            log_llm_call(
                self.model,
                "summarize",
                duration_ms=int((time.monotonic() - started) * 1000),
                transport=self.transport,
                status="error",
                error=str(exc),
            )
            raise SummarizationError(f"Summarization failed: {exc}") from exc

        log_llm_call(
            self.model,
            "summarize",
            duration_ms=int((time.monotonic() - started) * 1000),
            transport=self.transport,
        )
        if not summary.strip():
            raise SummarizationError("Summary generation failed")
        return summary.strip()
