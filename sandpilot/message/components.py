"""
内容块 - 对话轮次中可以包含的各种元素
Content blocks - the elements a conversation turn can contain.

所有内容块继承自 BaseBlock，使用 Pydantic v2 进行序列化，
通过 type 字段区分（带标签的联合类型）。
All blocks inherit from BaseBlock and use Pydantic v2 for serialization,
discriminated by the ``type`` field (a tagged union).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class BlockKind(str, Enum):
    """内容块类型枚举 / Content block kind enum."""

    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


class BaseBlock(BaseModel):
    """
    内容块基类
    Base content block.

    内容块一经创建便不可修改。
    Blocks are immutable once created.
    """

    model_config = ConfigDict(frozen=True)

    def to_plain_text(self) -> str:
        """转为纯文本表示 / Convert to plain text representation."""
        return ""

    def to_dict(self) -> dict[str, Any]:
        """转为字典 / Convert to dictionary."""
        return self.model_dump()


class TextBlock(BaseBlock):
    """纯文本块 / Plain text block."""

    type: Literal["text"] = "text"
    text: str = ""

    def to_plain_text(self) -> str:
        return self.text


class ToolCallBlock(BaseBlock):
    """
    工具调用请求 - 由提供者发出
    Tool call request - emitted by the provider.
    """

    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    def to_plain_text(self) -> str:
        return f"[Tool call: {self.name}]"


class ToolResultBlock(BaseBlock):
    """
    工具结果 - 与某个工具调用一一对应
    Tool result - matched one-to-one with a tool call.
    """

    type: Literal["tool_result"] = "tool_result"
    call_id: str
    # 部分协议按名称关联结果
    name: str = ""
    output: str = ""
    is_error: bool = False

    def to_plain_text(self) -> str:
        return self.output


ContentBlock = Annotated[
    Union[TextBlock, ToolCallBlock, ToolResultBlock],
    Field(discriminator="type"),
]
