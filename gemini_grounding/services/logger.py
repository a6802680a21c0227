"""Centralized logging service using loguru.

Everything goes to stderr: stdout is owned by the MCP stdio transport.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from gemini_grounding.config import settings

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=False,
)

if settings.log_to_file:
    LOG_DIR = Path(settings.log_dir)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        LOG_DIR / "gemini_grounding_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
    )

# Reduce noise from network/protocol libraries
for logger_name in (
    "httpx",
    "httpcore",
    "hpack",
    "google_genai",
    "mcp",
    "mcp.server.lowlevel.server",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_llm_call(
    model: str,
    caller: str,
    duration_ms: int = 0,
    transport: str = "sdk",
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log a Gemini API call."""
    call_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "model": model,
        "caller": caller,
        "transport": transport,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {call_data}")
    else:
        logger.info(f"LLM_CALL: {call_data}")


def log_scrape(
    url: str,
    status: str,
    attempts: int = 0,
    from_cache: bool = False,
    content_mode: Optional[str] = None,
    content_length: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log the outcome of one URL scrape."""
    scrape_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "url": url,
        "status": status,
        "attempts": attempts,
        "from_cache": from_cache,
        "content_mode": content_mode,
        "content_length": content_length,
        "error": error,
    }
    if error:
        logger.warning(f"SCRAPE_FAILED: {scrape_data}")
    else:
        logger.debug(f"SCRAPE: {scrape_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
