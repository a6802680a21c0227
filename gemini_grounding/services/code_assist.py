"""Project-scoped Code Assist transport used in OAuth mode."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from gemini_grounding.config import settings
from gemini_grounding.services.auth import AuthConfig

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class CodeAssistError(RuntimeError):
    """Raised when the Code Assist API cannot serve a request."""


class CodeAssistClient:
    def __init__(
        self,
        auth: AuthConfig,
        *,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        initial_delay_ms: int | None = None,
        max_delay_ms: int | None = None,
        poll_max: int | None = None,
        poll_interval_ms: int | None = None,
        timeout_seconds: float = 120.0,
        sleep: Sleep | None = None,
    ):
        self.auth = auth
        self.base_url = (base_url or settings.code_assist_base_url).rstrip("/")
        self._http_client = http_client
        self.max_retries = max(int(max_retries if max_retries is not None else settings.code_assist_max_retries), 0)
        self.initial_delay_ms = int(initial_delay_ms or settings.code_assist_initial_delay_ms)
        self.max_delay_ms = int(max_delay_ms or settings.code_assist_max_delay_ms)
        self.poll_max = int(poll_max if poll_max is not None else settings.onboard_poll_max)
        self.poll_interval_ms = int(
            poll_interval_ms if poll_interval_ms is not None else settings.onboard_poll_interval_ms
        )
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep or asyncio.sleep
        self.project_id: str | None = None

    async def _request(self, method: str, url: str, body: Any = None) -> httpx.Response:
        headers = await self.auth.get_headers()
        if self._http_client is not None:
            return await self._http_client.request(method, url, headers=headers, json=body)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.request(method, url, headers=headers, json=body)

    async def _post_json(self, path: str, body: Any, failure: str) -> dict[str, Any]:
        response = await self._request("POST", f"{self.base_url}/{path}", body)
        if not response.is_success:
            raise CodeAssistError(f"{failure}: {response.text}")
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def ensure_project_id(self) -> str:
        """Resolve the Code Assist project once; failures are not cached."""
        if self.project_id:
            return self.project_id

        load_data = await self._post_json("v1internal:loadCodeAssist", {}, "Failed to load Code Assist")
        project = load_data.get("cloudaicompanionProject")
        if isinstance(project, str) and project:
            self.project_id = project
            return project

        tiers = load_data.get("allowedTiers") or []
        tier = next((t for t in tiers if isinstance(t, dict) and t.get("isDefault")), None)
        if tier is None and tiers and isinstance(tiers[0], dict):
            tier = tiers[0]
        if tier is None:
            raise CodeAssistError("No available tiers for Code Assist")

        onboard_data = await self._post_json(
            "v1internal:onboardUser", {"tier": tier.get("id")}, "Failed to onboard user"
        )
        operation = onboard_data.get("operation")
        if not isinstance(operation, dict):
            raise CodeAssistError("No operation returned from onboarding")

        polls = 0
        while not operation.get("done") and polls < self.poll_max:
            await self._sleep(self.poll_interval_ms / 1000.0)
            response = await self._request("GET", f"{self.base_url}/{operation.get('name', '')}")
            if not response.is_success:
                raise CodeAssistError(f"Failed to get operation status: {response.text}")
            polled = response.json()
            operation = polled if isinstance(polled, dict) else {}
            polls += 1

        if not operation.get("done"):
            raise CodeAssistError("Onboarding operation timed out")

        project_info = (operation.get("response") or {}).get("cloudaicompanionProject") or {}
        project_id = project_info.get("id") if isinstance(project_info, dict) else None
        if not project_id:
            raise CodeAssistError("Failed to obtain project ID from onboarding")

        logger.info(f"Resolved Code Assist project {project_id} after {polls} polls")
        self.project_id = project_id
        return project_id

    def _backoff_seconds(self, attempt: int) -> float:
        return min(self.initial_delay_ms * 2**attempt, self.max_delay_ms) / 1000.0

    async def generate_content(self, model: str, prompt: str, *, grounded: bool = True) -> dict[str, Any]:
        """Generate content, retrying rate limits, 5xx responses and network failures."""
        project_id = await self.ensure_project_id()
        request: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if grounded:
            request["tools"] = [{"googleSearch": {}}]
        body = {"model": model, "project": project_id, "request": request}
        url = f"{self.base_url}/v1internal:generateContent"

        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                response = await self._request("POST", url, body)
            except httpx.TransportError as exc:
                if attempt == self.max_retries:
                    raise CodeAssistError(f"Code Assist request failed: {exc}") from exc
                delay = self._backoff_seconds(attempt)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{attempts}): {exc}. "
                    f"Retrying in {delay:g} seconds..."
                )
                await self._sleep(delay)
                continue

            if response.status_code in RETRYABLE_STATUS and attempt < self.max_retries:
                delay = self._backoff_seconds(attempt)
                reason = "Rate limit hit" if response.status_code == 429 else f"Server error {response.status_code}"
                logger.warning(
                    f"{reason} (attempt {attempt + 1}/{attempts}). "
                    f"Retrying in {delay:g} seconds..."
                )
                await self._sleep(delay)
                continue

            if not response.is_success:
                raise CodeAssistError(f"Code Assist API error: {response.status_code} - {response.text}")

            result = response.json()
            if not isinstance(result, dict):
                raise CodeAssistError("Unexpected Code Assist response shape")
            wrapped = result.get("response")
            return wrapped if isinstance(wrapped, dict) else result

        raise CodeAssistError("Failed to generate content after all retries")
