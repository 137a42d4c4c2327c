"""
消息模块 - 与提供者无关的对话模型
Message module - provider-agnostic conversation model.
"""

from sandpilot.message.components import (
    BlockKind,
    ContentBlock,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
)
from sandpilot.message.conversation import Conversation, Turn

__all__ = [
    "BlockKind",
    "ContentBlock",
    "TextBlock",
    "ToolCallBlock",
    "ToolResultBlock",
    "Conversation",
    "Turn",
]
