from __future__ import annotations

import asyncio
import json
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from gemini_grounding.services.oauth2 import (
    AuthenticationMissingError,
    CredentialStore,
    OAuth2Client,
    TokenRefreshError,
)

NOW_MS = 1_700_000_000_000


def _write_creds(path: Path, **overrides) -> None:
    record = {
        "access_token": "old-access",
        "refresh_token": "refresh-1",
        "token_type": "Bearer",
        "expiry_date": NOW_MS - 1,
    }
    record.update(overrides)
    path.write_text(json.dumps(record), encoding="utf-8")


def _oauth_client(path: Path, handler) -> OAuth2Client:
    return OAuth2Client(
        "client-id",
        "client-secret",
        store=CredentialStore(path),
        token_endpoint="https://oauth.example/token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=lambda: NOW_MS,
    )


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_once_and_persisted(tmp_path):
    creds = tmp_path / "oauth_creds.json"
    _write_creds(creds)
    forms: list[dict[str, list[str]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        forms.append(parse_qs(request.content.decode()))
        return httpx.Response(200, json={"access_token": "new-access", "expires_in": 3600, "token_type": "Bearer"})

    client = _oauth_client(creds, handler)

    first = await client.get_valid_token()
    second = await client.get_valid_token()

    assert first == second == "new-access"
    assert len(forms) == 1
    assert forms[0] == {
        "client_id": ["client-id"],
        "client_secret": ["client-secret"],
        "refresh_token": ["refresh-1"],
        "grant_type": ["refresh_token"],
    }

    saved = json.loads(creds.read_text(encoding="utf-8"))
    assert saved["access_token"] == "new-access"
    assert saved["refresh_token"] == "refresh-1"
    assert saved["expiry_date"] == NOW_MS + 3600 * 1000


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(tmp_path):
    creds = tmp_path / "oauth_creds.json"
    _write_creds(creds)
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"access_token": "new-access", "expires_in": 3600})

    client = _oauth_client(creds, handler)

    tokens = await asyncio.gather(*(client.get_valid_token() for _ in range(3)))

    assert tokens == ["new-access"] * 3
    assert calls == 1


@pytest.mark.asyncio
async def test_valid_token_skips_refresh(tmp_path):
    creds = tmp_path / "oauth_creds.json"
    _write_creds(creds, expiry_date=NOW_MS + 60_000)

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("refresh not expected")

    assert await _oauth_client(creds, handler).get_valid_token() == "old-access"


@pytest.mark.asyncio
async def test_rejected_refresh_asks_for_reauthentication(tmp_path):
    creds = tmp_path / "oauth_creds.json"
    _write_creds(creds)
    client = _oauth_client(creds, lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

    with pytest.raises(TokenRefreshError, match="gemini auth login"):
        await client.get_valid_token()

    assert json.loads(creds.read_text(encoding="utf-8"))["access_token"] == "old-access"


@pytest.mark.asyncio
async def test_missing_credential_file(tmp_path):
    client = _oauth_client(tmp_path / "absent.json", lambda request: httpx.Response(200))
    with pytest.raises(AuthenticationMissingError):
        await client.get_valid_token()


def test_store_ignores_unreadable_file(tmp_path):
    creds = tmp_path / "oauth_creds.json"
    creds.write_text("{not json", encoding="utf-8")
    assert CredentialStore(creds).load() is None


def test_store_save_creates_parent_directories(tmp_path):
    from gemini_grounding.models.interfaces import OAuth2Token

    store = CredentialStore(tmp_path / "nested" / "oauth_creds.json")
    store.save(OAuth2Token(access_token="a", refresh_token="r", expiry_date=5))

    assert store.path.is_file()
    assert store.load() == OAuth2Token(access_token="a", refresh_token="r", token_type="Bearer", expiry_date=5)
