from __future__ import annotations

import json

import pytest

from gemini_grounding.config import settings
from gemini_grounding.services.auth import AuthConfig
from gemini_grounding.services.oauth2 import (
    AuthenticationError,
    AuthenticationMissingError,
    CredentialStore,
)


@pytest.fixture
def no_env_key(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "")


@pytest.mark.asyncio
async def test_api_key_wins_over_stored_credentials(tmp_path):
    creds = tmp_path / "oauth_creds.json"
    creds.write_text(json.dumps({"access_token": "a", "refresh_token": "r"}), encoding="utf-8")

    auth = AuthConfig(api_key="key-123", store=CredentialStore(creds))

    assert auth.is_api_key()
    assert not auth.is_oauth()
    assert auth.get_api_key() == "key-123"
    assert await auth.get_headers() == {}
    with pytest.raises(AuthenticationError):
        await auth.get_oauth_token()


def test_api_key_read_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "env-key")
    assert AuthConfig().get_api_key() == "env-key"


@pytest.mark.asyncio
async def test_oauth_mode_uses_stored_token(tmp_path, no_env_key):
    creds = tmp_path / "oauth_creds.json"
    creds.write_text(
        json.dumps({"access_token": "stored", "refresh_token": "r", "expiry_date": 10**13}),
        encoding="utf-8",
    )

    auth = AuthConfig(store=CredentialStore(creds), client_id="id", client_secret="secret")

    assert auth.is_oauth()
    assert await auth.get_headers() == {
        "Authorization": "Bearer stored",
        "Content-Type": "application/json",
    }
    with pytest.raises(AuthenticationError):
        auth.get_api_key()


def test_no_credentials_is_fatal(tmp_path, no_env_key):
    with pytest.raises(AuthenticationMissingError, match="GEMINI_API_KEY"):
        AuthConfig(store=CredentialStore(tmp_path / "missing.json"))
