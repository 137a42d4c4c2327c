"""
协议适配器 - 每种提供者线协议一个实现
Protocol adapters - one implementation per provider wire protocol.
"""

from sandpilot.intellect.adapters.anthropic import AnthropicAdapter
from sandpilot.intellect.adapters.gemini import GeminiAdapter

__all__ = ["AnthropicAdapter", "GeminiAdapter"]
