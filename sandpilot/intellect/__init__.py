"""
智能层模块 - 协议适配、传输与中继提供者
Intellect module - protocol adapters, transport and relay providers.
"""

from sandpilot.intellect.adapters import AnthropicAdapter, GeminiAdapter
from sandpilot.intellect.base import (
    ParsedReply,
    ParsedToolCall,
    ProtocolAdapter,
    ProtocolKind,
    normalize_arguments,
)
from sandpilot.intellect.registry import (
    PROVIDER_NAMES,
    create_adapter,
    create_relay_providers,
)
from sandpilot.intellect.transport import ProviderTransport, RelayTransport

__all__ = [
    "AnthropicAdapter",
    "GeminiAdapter",
    "ParsedReply",
    "ParsedToolCall",
    "ProtocolAdapter",
    "ProtocolKind",
    "normalize_arguments",
    "PROVIDER_NAMES",
    "create_adapter",
    "create_relay_providers",
    "ProviderTransport",
    "RelayTransport",
]
