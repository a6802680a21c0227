from __future__ import annotations

from typing import Literal

from loguru import logger

from gemini_grounding.config import settings
from gemini_grounding.services.oauth2 import (
    AuthenticationError,
    AuthenticationMissingError,
    CredentialStore,
    OAuth2Client,
)

AuthMethod = Literal["api-key", "oauth"]


class AuthConfig:
    """Chooses the credential source once, at construction.

    An API key from the environment wins; otherwise the persisted OAuth
    credential is used. With neither, construction fails.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        store: CredentialStore | None = None,
        oauth_client: OAuth2Client | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
    ):
        self.method: AuthMethod
        self._api_key: str | None = None
        self.oauth_client: OAuth2Client | None = None

        key = settings.gemini_api_key if api_key is None else api_key
        if key:
            self._api_key = key
            self.method = "api-key"
            logger.info("Using Gemini API key authentication")
            return

        store = store or (oauth_client.store if oauth_client else CredentialStore())
        token = store.load()
        if token is not None:
            self.method = "oauth"
            if oauth_client is None:
                client_id = settings.oauth_client_id if client_id is None else client_id
                client_secret = settings.oauth_client_secret if client_secret is None else client_secret
                if not client_id or not client_secret:
                    logger.warning(
                        "OAuth2 client credentials not found in environment. "
                        "Token refresh will fail once the stored token expires."
                    )
                oauth_client = OAuth2Client(client_id, client_secret, store=store)
            self.oauth_client = oauth_client
            logger.info(f"Using OAuth credentials from {store.path}")
            return

        raise AuthenticationMissingError(
            "No authentication method found. Please set GEMINI_API_KEY environment "
            'variable or run "gemini auth login"'
        )

    def is_api_key(self) -> bool:
        return self.method == "api-key"

    def is_oauth(self) -> bool:
        return self.method == "oauth"

    def get_api_key(self) -> str:
        if not self.is_api_key() or not self._api_key:
            raise AuthenticationError("API key not available")
        return self._api_key

    async def get_oauth_token(self) -> str:
        if not self.is_oauth() or self.oauth_client is None:
            raise AuthenticationError("OAuth not available")
        return await self.oauth_client.get_valid_token()

    async def get_headers(self) -> dict[str, str]:
        if self.is_oauth():
            token = await self.get_oauth_token()
            return {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
        return {}
