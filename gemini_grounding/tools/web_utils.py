from __future__ import annotations

from urllib.parse import urlparse

USER_AGENT = "Mozilla/5.0 (compatible; GeminiGroundingMCP/1.0)"


def is_valid_url(url: str) -> bool:
    """Only absolute http(s) URLs are fetched."""
    try:
        result = urlparse(url)
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def truncate(text: str, limit: int, suffix: str) -> str:
    """Clip ``text`` to ``limit`` chars, appending ``suffix`` only when clipped."""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix
