"""OAuth2 credential persistence and refresh."""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Callable

import httpx
from loguru import logger

from gemini_grounding.config import settings
from gemini_grounding.models.interfaces import OAuth2Token

REAUTH_HINT = 'Please re-authenticate by running "gemini auth login".'


class AuthenticationError(RuntimeError):
    """Base class for credential problems."""


class AuthenticationMissingError(AuthenticationError):
    """No usable credential is configured."""


class TokenRefreshError(AuthenticationError):
    """The token endpoint refused to refresh the stored credential."""


def now_millis() -> int:
    return int(time.time() * 1000)


class CredentialStore:
    """Whole-file JSON storage for the OAuth credential record."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path is not None else settings.creds_path

    def load(self) -> OAuth2Token | None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable OAuth credential file {self.path}: {exc}")
            return None
        return OAuth2Token.from_dict(raw)

    def save(self, token: OAuth2Token) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(token.to_dict(), indent=2), encoding="utf-8")


class OAuth2Client:
    """Hands out a valid access token, refreshing it through the token endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        store: CredentialStore | None = None,
        token_endpoint: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.store = store or CredentialStore()
        self.token_endpoint = token_endpoint or settings.oauth_token_endpoint
        self._http_client = http_client
        self._clock = clock or now_millis
        self._lock = asyncio.Lock()

    async def get_valid_token(self) -> str:
        # Serialized so that concurrent callers share one refresh.
        async with self._lock:
            token = self.store.load()
            if token is None:
                raise AuthenticationMissingError(f"No OAuth token found. {REAUTH_HINT}")

            if token.expiry_date and token.expiry_date > self._clock():
                return token.access_token

            logger.info("OAuth token expired, refreshing...")
            refreshed = await self._refresh(token.refresh_token)
            try:
                self.store.save(refreshed)
            except OSError as exc:
                logger.error(f"Failed to save refreshed OAuth token to {self.store.path}: {exc}")
            return refreshed.access_token

    async def _refresh(self, refresh_token: str) -> OAuth2Token:
        if not refresh_token:
            raise TokenRefreshError(f"Stored OAuth credential has no refresh token. {REAUTH_HINT}")

        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = await self._post(form)
        except httpx.HTTPError as exc:
            raise TokenRefreshError(f"Failed to refresh token: {exc}. {REAUTH_HINT}") from exc

        if not response.is_success:
            raise TokenRefreshError(
                f"Failed to refresh token ({response.status_code}): {response.text}. {REAUTH_HINT}"
            )

        try:
            data = response.json()
            access_token = data["access_token"]
            expires_in = int(data["expires_in"])
        except (ValueError, KeyError, TypeError) as exc:
            raise TokenRefreshError(f"Malformed token response: {exc}. {REAUTH_HINT}") from exc

        return OAuth2Token(
            access_token=access_token,
            # The endpoint does not rotate refresh tokens in this flow.
            refresh_token=refresh_token,
            token_type=data.get("token_type") or "Bearer",
            expiry_date=self._clock() + expires_in * 1000,
        )

    async def _post(self, form: dict[str, str]) -> httpx.Response:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if self._http_client is not None:
            return await self._http_client.post(self.token_endpoint, data=form, headers=headers)
        async with httpx.AsyncClient(timeout=30.0) as client:
            return await client.post(self.token_endpoint, data=form, headers=headers)
