"""
智能层注册表 - 按名称创建协议适配器与中继提供者
Intellect registry - creates protocol adapters and relay providers by name.
"""

from __future__ import annotations

import logging
from typing import Any

from sandpilot.config.defaults import PROVIDER_NAMES
from sandpilot.intellect.adapters import AnthropicAdapter, GeminiAdapter
from sandpilot.intellect.base import ProtocolAdapter
from sandpilot.intellect.providers import (
    AnthropicRelayProvider,
    GeminiRelayProvider,
    RelayProvider,
)

logger = logging.getLogger(__name__)


def create_adapter(provider: str, config: dict[str, Any] | None = None) -> ProtocolAdapter:
    """
    创建协议适配器
    Create a protocol adapter.
    """
    conf = config or {}
    if provider == "anthropic":
        adapter: ProtocolAdapter = AnthropicAdapter(
            model=conf.get("model", "claude-3-opus-20240229"),
            max_tokens=int(conf.get("max_tokens", 4096)),
        )
    elif provider == "google":
        adapter = GeminiAdapter(model=conf.get("model", "gemini-2.0-flash"))
    else:
        raise KeyError(f"Unknown provider: {provider} (expected one of {', '.join(PROVIDER_NAMES)})")
    logger.info("已创建协议适配器: %s (%s)", provider, adapter.model)
    return adapter


def create_relay_providers(config: dict[str, Any]) -> dict[str, RelayProvider]:
    """
    从 providers 配置创建中继提供者
    Create the relay providers from the ``providers`` config section.
    """
    return {
        "anthropic": AnthropicRelayProvider(dict(config.get("anthropic") or {})),
        "google": GeminiRelayProvider(dict(config.get("google") or {})),
    }
