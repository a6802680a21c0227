from __future__ import annotations

from pathlib import Path

from gemini_grounding.config import Settings


def test_defaults(monkeypatch):
    for name in ("BATCH_SIZE", "RATE_LIMIT_DELAY", "CACHE_TTL", "SCRAPE_TIMEOUT", "SCRAPE_RETRIES"):
        monkeypatch.delenv(name, raising=False)

    config = Settings(_env_file=None)

    assert config.batch_size == 5
    assert config.rate_limit_delay == 100
    assert config.cache_ttl == 3600
    assert config.scrape_timeout == 10000
    assert config.scrape_retries == 3
    assert config.excerpt_length == 1000
    assert config.summary_length == 5000


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE", "7")
    monkeypatch.setenv("RATE_LIMIT_DELAY", "250")
    monkeypatch.setenv("OAUTH_CREDS_PATH", "~/creds/oauth.json")

    config = Settings(_env_file=None)

    assert config.batch_size == 7
    assert config.rate_limit_delay == 250
    assert config.creds_path == Path("~/creds/oauth.json").expanduser()
