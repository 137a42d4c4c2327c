"""
智能层基类 - 协议适配器的抽象
Intellect base - abstraction of the protocol adapters.

适配器在内部对话模型与某个提供者的线协议之间做双向转换。
编排器只面向这里的接口编写，从不直接接触任何协议的结构。
An adapter translates between the internal conversation model and one
provider's wire protocol. The orchestrator is written against this interface
only and never touches either protocol's shapes.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sandpilot.agent.tools import ToolDescriptor
    from sandpilot.message.conversation import Turn


class ProtocolKind(str, Enum):
    """协议类型枚举 / Protocol kind enum."""

    # 块结构的 tool_use 协议
    TOOL_USE = "tool_use"
    # function_call 协议
    FUNCTION_CALL = "function_call"


@dataclass
class ParsedToolCall:
    """
    解析后的工具调用请求
    A parsed tool-call request.

    error 非空时表示参数无法解码，分发器会将其作为工具错误返回。
    A non-empty ``error`` means the arguments could not be decoded; the
    dispatcher reports it back as a tool error.
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    error: str | None = None


@dataclass
class ParsedReply:
    """
    解析后的提供者响应
    A parsed provider reply.
    """

    text_fragments: list[str] = field(default_factory=list)
    tool_calls: list[ParsedToolCall] = field(default_factory=list)
    is_terminal: bool = True
    stop_reason: str | None = None

    @property
    def text(self) -> str:
        return "".join(self.text_fragments)


def normalize_arguments(raw: Any) -> tuple[dict[str, Any], str | None]:
    """
    将参数规范化为字典：已结构化的值原样使用，JSON 字符串先解码
    Normalize arguments to a dict: structured values are used as-is, JSON
    strings are decoded first.

    返回 (参数, 错误信息)。
    Returns (arguments, error message).
    """
    if raw is None or raw == "":
        return {}, None
    if isinstance(raw, dict):
        return dict(raw), None
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            return {}, f"Tool arguments are not valid JSON: {exc}"
        if isinstance(decoded, dict):
            return decoded, None
        return {}, "Tool arguments must be a JSON object"
    return {}, f"Unsupported tool arguments type: {type(raw).__name__}"


class ProtocolAdapter(ABC):
    """
    协议适配器基类
    Protocol adapter base.
    """

    kind: ProtocolKind
    # 中继上的同源端点路径
    endpoint: str = ""

    def __init__(self, model: str) -> None:
        self.model = model

    @abstractmethod
    def serialize_request(
        self,
        system_prompt: str,
        turns: Sequence[Turn],
        tools: Sequence[ToolDescriptor],
    ) -> dict[str, Any]:
        """
        序列化请求
        Serialize a request.
        """
        ...

    @abstractmethod
    def parse_reply(self, wire_reply: dict[str, Any]) -> ParsedReply:
        """
        解析响应，提取文本片段、工具调用与终止信号
        Parse a reply into text fragments, tool calls and the terminal signal.
        """
        ...
