"""
中继提供者 - 中继服务端使用的厂商 SDK 封装
Relay providers - vendor SDK wrappers used by the relay server.
"""

from sandpilot.intellect.providers.anthropic_chat import AnthropicRelayProvider
from sandpilot.intellect.providers.base import (
    ProviderInfo,
    ProviderUnavailableError,
    RelayProvider,
)
from sandpilot.intellect.providers.gemini_chat import GeminiRelayProvider

__all__ = [
    "AnthropicRelayProvider",
    "GeminiRelayProvider",
    "ProviderInfo",
    "ProviderUnavailableError",
    "RelayProvider",
]
