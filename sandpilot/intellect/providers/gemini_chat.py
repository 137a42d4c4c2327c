"""
Google Gemini 中继提供者
Google Gemini relay provider.
"""

from __future__ import annotations

import logging
from typing import Any

from sandpilot.intellect.providers.base import (
    ProviderInfo,
    ProviderUnavailableError,
    RelayProvider,
)

logger = logging.getLogger(__name__)


class GeminiRelayProvider(RelayProvider):
    """Google Gemini 中继提供者 / Google Gemini relay provider."""

    env_keys = ("GOOGLE_API_KEY", "GEMINI_API_KEY")

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._model = config.get("model", "gemini-2.0-flash")
        self._client: Any = None
        self._info = ProviderInfo(
            provider_id="google",
            display_name="Google Gemini",
            model_name=self._model,
        )

    def _ensure_client(self) -> Any:
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def forward(self, body: dict[str, Any]) -> dict[str, Any]:
        if not self.available:
            raise ProviderUnavailableError("Google API key is not configured")
        client = self._ensure_client()

        response = await client.aio.models.generate_content(
            model=body.get("model") or self._model,
            contents=body.get("contents", []),
            config=body.get("config"),
        )
        return response.model_dump(mode="json", by_alias=True, exclude_none=True)
