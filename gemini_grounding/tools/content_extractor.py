from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup
from loguru import logger

MIN_ARTICLE_CHARS = 1


class ExtractionError(RuntimeError):
    """Raised when a page has no extractable article content."""


@dataclass(slots=True)
class ExtractedArticle:
    url: str
    title: str
    article_html: str
    text: str
    method: str


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _plain_text_from_payload(payload: dict[str, Any]) -> str:
    plain_text = payload.get("plain_text")
    if isinstance(plain_text, list):
        chunks: list[str] = []
        for item in plain_text:
            if isinstance(item, str):
                chunks.append(item)
                continue
            if isinstance(item, dict):
                text_value = item.get("text")
                if isinstance(text_value, str):
                    chunks.append(text_value)
        return normalize_text("\n\n".join(chunks))
    if isinstance(plain_text, str):
        return normalize_text(plain_text)

    content = payload.get("content")
    if isinstance(content, str):
        soup = BeautifulSoup(content, "html.parser")
        return normalize_text(soup.get_text("\n"))
    return ""


def _title_from_html(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, "html.parser")
    title = soup.title.string if soup.title and soup.title.string else ""
    return normalize_text(title)


@lru_cache(maxsize=1)
def _readabilipy_js_ready() -> bool:
    """Readability.js mode needs node plus readabilipy's bundled JS deps."""
    import readabilipy

    if shutil.which("node") is None:
        return False

    js_dir = Path(readabilipy.__file__).resolve().parent / "javascript"
    return (js_dir / "node_modules").exists()


def _run_readabilipy(raw_html: str, *, use_readability: bool) -> dict[str, Any]:
    from readabilipy import simple_json_from_html_string

    payload = simple_json_from_html_string(raw_html, use_readability=use_readability)
    return payload if isinstance(payload, dict) else {}


def extract_article(raw_html: str, url: str) -> ExtractedArticle:
    """Extract the readable article from a page.

    Uses Readability.js through readabilipy when node is available and the
    pure-Python simplifier otherwise.
    """
    modes = [(True, "readabilipy_js"), (False, "readabilipy")] if _readabilipy_js_ready() else [
        (False, "readabilipy")
    ]

    last_error: Exception | None = None
    for use_readability, method in modes:
        try:
            payload = _run_readabilipy(raw_html, use_readability=use_readability)
        except Exception as exc:
            logger.debug(f"{method} failed for {url}: {exc}")
            last_error = exc
            continue

        article_html = payload.get("content")
        text = _plain_text_from_payload(payload)
        if not isinstance(article_html, str) or len(text) < MIN_ARTICLE_CHARS:
            continue

        raw_title = payload.get("title")
        title = normalize_text(raw_title) if isinstance(raw_title, str) else ""
        return ExtractedArticle(
            url=url,
            title=title or _title_from_html(raw_html),
            article_html=article_html,
            text=text,
            method=method,
        )

    if last_error is not None:
        raise ExtractionError(f"Failed to extract content from URL: {last_error}") from last_error
    raise ExtractionError("Failed to extract content from URL")


def article_to_markdown(article_html: str) -> str:
    """Render the extracted article as Markdown."""
    from markitdown import MarkItDown

    result = MarkItDown().convert_stream(
        BytesIO(article_html.encode("utf-8")),
        file_extension=".html",
    )
    text_content = getattr(result, "text_content", "")
    if isinstance(text_content, str) and text_content.strip():
        return normalize_text(text_content)

    soup = BeautifulSoup(article_html, "html.parser")
    return normalize_text(soup.get_text("\n"))
