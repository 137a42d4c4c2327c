"""
Anthropic 协议适配器 - 块结构的 tool_use 协议
Anthropic protocol adapter - the block-structured "tool_use" protocol.

终止信号为 stop_reason 枚举：只有 "tool_use" 表示还有工具调用待执行。
The terminal signal is the stop_reason enum: only "tool_use" means tool
calls are pending.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sandpilot.errors import ProviderReplyError
from sandpilot.intellect.base import (
    ParsedReply,
    ParsedToolCall,
    ProtocolAdapter,
    ProtocolKind,
    normalize_arguments,
)
from sandpilot.message.components import TextBlock, ToolCallBlock, ToolResultBlock

if TYPE_CHECKING:
    from sandpilot.agent.tools import ToolDescriptor
    from sandpilot.message.conversation import Turn

logger = logging.getLogger(__name__)

TOOL_USE_STOP_REASON = "tool_use"


class AnthropicAdapter(ProtocolAdapter):
    """Anthropic tool_use 协议适配器 / Anthropic tool_use protocol adapter."""

    kind = ProtocolKind.TOOL_USE
    endpoint = "/api/anthropic/messages"

    def __init__(self, model: str = "claude-3-opus-20240229", max_tokens: int = 4096) -> None:
        super().__init__(model)
        self.max_tokens = max_tokens

    def serialize_request(
        self,
        system_prompt: str,
        turns: Sequence[Turn],
        tools: Sequence[ToolDescriptor],
    ) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        for turn in turns:
            blocks = [self._serialize_block(b) for b in turn.content]
            blocks = [b for b in blocks if b is not None]
            if not blocks:
                continue
            # 相邻同角色消息合并
            if messages and messages[-1]["role"] == turn.role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": turn.role, "content": blocks})

        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system_prompt,
            "messages": messages,
            "tools": [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.schema(),
                }
                for tool in tools
            ],
        }

    @staticmethod
    def _serialize_block(block: Any) -> dict[str, Any] | None:
        if isinstance(block, TextBlock):
            if not block.text:
                return None
            return {"type": "text", "text": block.text}
        if isinstance(block, ToolCallBlock):
            return {
                "type": "tool_use",
                "id": block.id,
                "name": block.name,
                "input": dict(block.arguments),
            }
        if isinstance(block, ToolResultBlock):
            payload: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": block.call_id,
                "content": [
                    {"type": "text", "text": block.output or "Tool executed with no output."}
                ],
            }
            if block.is_error:
                payload["is_error"] = True
            return payload
        return None

    def parse_reply(self, wire_reply: dict[str, Any]) -> ParsedReply:
        if wire_reply.get("type") == "error":
            error = wire_reply.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderReplyError(message or "Anthropic returned an error reply")

        content = wire_reply.get("content")
        if not isinstance(content, list):
            raise ProviderReplyError("Anthropic reply has no content list")

        reply = ParsedReply(stop_reason=wire_reply.get("stop_reason"))
        for block in content:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "text":
                text = block.get("text") or ""
                if text.strip():
                    reply.text_fragments.append(text)
            elif block_type == "tool_use":
                arguments, error = normalize_arguments(block.get("input"))
                reply.tool_calls.append(
                    ParsedToolCall(
                        name=str(block.get("name") or ""),
                        arguments=arguments,
                        id=block.get("id") or None,
                        error=error,
                    )
                )
            else:
                logger.debug("忽略未知内容块: %s", block_type)

        reply.is_terminal = reply.stop_reason != TOOL_USE_STOP_REASON
        return reply
