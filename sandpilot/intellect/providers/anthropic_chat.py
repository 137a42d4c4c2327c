"""
Anthropic Claude 中继提供者
Anthropic Claude relay provider.
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


class AnthropicRelayProvider(RelayProvider):
    """Anthropic Claude 中继提供者 / Anthropic Claude relay provider."""

    env_keys = ("ANTHROPIC_API_KEY",)

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._model = config.get("model", "claude-3-opus-20240229")
        self._base_url = config.get("base_url", "")
        self._client: Any = None
        self._info = ProviderInfo(
            provider_id="anthropic",
            display_name="Anthropic Claude",
            model_name=self._model,
        )

    def _ensure_client(self) -> Any:
        if self._client is None:
            from anthropic import AsyncAnthropic

            kwargs: dict[str, Any] = {"api_key": self._api_key}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = AsyncAnthropic(**kwargs)
        return self._client

    async def forward(self, body: dict[str, Any]) -> dict[str, Any]:
        if not self.available:
            raise ProviderUnavailableError("Anthropic API key is not configured")
        client = self._ensure_client()

        request = dict(body)
        request.setdefault("model", self._model)
        request.setdefault("max_tokens", 4096)
        if not request.get("tools"):
            request.pop("tools", None)

        response = await client.messages.create(**request)
        logger.debug("Anthropic 响应: stop_reason=%s", response.stop_reason)
        return response.model_dump(mode="json", exclude_none=True)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
