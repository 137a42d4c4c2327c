"""
Gemini 协议适配器 - function_call 协议
Gemini protocol adapter - the "function_call" protocol.

没有显式的终止枚举：响应中不存在函数调用即表示本轮结束。
结果按位置与名称关联，因此这里不发送调用 id。
There is no explicit terminal enum: a reply without function calls ends the
turn. Results are correlated by position and name, so call ids are not sent.
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

ROLE_MAP = {"user": "user", "assistant": "model"}


def _pick(mapping: dict[str, Any], camel: str, snake: str) -> Any:
    """同时兼容 camelCase 与 snake_case 字段 / Accept camelCase or snake_case keys."""
    value = mapping.get(camel)
    if value is None:
        value = mapping.get(snake)
    return value


def to_gemini_schema(schema: Any) -> Any:
    """
    将 JSON Schema 的类型名转为大写
    Upper-case the type names of a JSON schema.
    """
    if isinstance(schema, dict):
        converted: dict[str, Any] = {}
        for key, value in schema.items():
            if key == "type" and isinstance(value, str):
                converted[key] = value.upper()
            else:
                converted[key] = to_gemini_schema(value)
        return converted
    if isinstance(schema, list):
        return [to_gemini_schema(item) for item in schema]
    return schema


class GeminiAdapter(ProtocolAdapter):
    """Gemini function_call 协议适配器 / Gemini function_call protocol adapter."""

    kind = ProtocolKind.FUNCTION_CALL
    endpoint = "/api/google/generate"

    def __init__(self, model: str = "gemini-2.0-flash") -> None:
        super().__init__(model)

    def serialize_request(
        self,
        system_prompt: str,
        turns: Sequence[Turn],
        tools: Sequence[ToolDescriptor],
    ) -> dict[str, Any]:
        contents: list[dict[str, Any]] = []
        for turn in turns:
            parts = [self._serialize_block(b) for b in turn.content]
            parts = [p for p in parts if p is not None]
            if not parts:
                continue
            role = ROLE_MAP[turn.role]
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"].extend(parts)
            else:
                contents.append({"role": role, "parts": parts})

        declarations = [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": to_gemini_schema(tool.schema()),
            }
            for tool in tools
        ]
        return {
            "model": self.model,
            "contents": contents,
            "config": {
                "systemInstruction": system_prompt,
                "tools": [{"functionDeclarations": declarations}],
            },
        }

    @staticmethod
    def _serialize_block(block: Any) -> dict[str, Any] | None:
        if isinstance(block, TextBlock):
            return {"text": block.text} if block.text else None
        if isinstance(block, ToolCallBlock):
            return {"functionCall": {"name": block.name, "args": dict(block.arguments)}}
        if isinstance(block, ToolResultBlock):
            key = "error" if block.is_error else "output"
            return {
                "functionResponse": {
                    "name": block.name,
                    "response": {key: block.output or "Tool executed with no output."},
                }
            }
        return None

    def parse_reply(self, wire_reply: dict[str, Any]) -> ParsedReply:
        candidates = wire_reply.get("candidates")
        if not candidates:
            feedback = _pick(wire_reply, "promptFeedback", "prompt_feedback") or {}
            reason = _pick(feedback, "blockReason", "block_reason") if isinstance(feedback, dict) else None
            if reason:
                raise ProviderReplyError(f"Gemini blocked the prompt: {reason}")
            logger.warning("Gemini 响应中没有候选结果")
            return ParsedReply(is_terminal=True)

        candidate = candidates[0] if isinstance(candidates[0], dict) else {}
        reply = ParsedReply(stop_reason=_pick(candidate, "finishReason", "finish_reason"))
        content = candidate.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None

        for part in parts or []:
            if not isinstance(part, dict):
                continue
            call = _pick(part, "functionCall", "function_call")
            if isinstance(call, dict):
                arguments, error = normalize_arguments(call.get("args"))
                reply.tool_calls.append(
                    ParsedToolCall(
                        name=str(call.get("name") or ""),
                        arguments=arguments,
                        id=call.get("id") or None,
                        error=error,
                    )
                )
                continue
            text = part.get("text")
            if isinstance(text, str) and text.strip() and not part.get("thought"):
                reply.text_fragments.append(text)

        reply.is_terminal = not reply.tool_calls
        return reply
