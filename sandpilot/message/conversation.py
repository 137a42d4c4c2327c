"""
对话与轮次 - 只追加的对话记录
Conversation and turns - the append-only transcript.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from sandpilot.message.components import (
    ContentBlock,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
)

Role = Literal["user", "assistant"]


def _new_turn_id() -> str:
    return uuid.uuid4().hex


class Turn(BaseModel):
    """
    对话轮次
    A single conversation turn.

    工具结果轮次的角色为 user，且只包含 ToolResultBlock。
    Tool-result turns carry the ``user`` role and only ToolResultBlocks.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_turn_id)
    role: Role
    content: tuple[ContentBlock, ...] = ()
    # 由编排器自行生成的提示（停止、截断、错误等）
    synthetic: bool = False

    @classmethod
    def user_text(cls, text: str) -> Turn:
        """创建用户文本轮次 / Create a user text turn."""
        return cls(role="user", content=(TextBlock(text=text),))

    @classmethod
    def assistant_text(cls, text: str, synthetic: bool = False) -> Turn:
        """创建助手文本轮次 / Create an assistant text turn."""
        return cls(role="assistant", content=(TextBlock(text=text),), synthetic=synthetic)

    @classmethod
    def tool_results(cls, results: list[ToolResultBlock]) -> Turn:
        """创建工具结果轮次 / Create a tool-result turn."""
        return cls(role="user", content=tuple(results))

    @property
    def text(self) -> str:
        """拼接所有文本块 / Concatenate all text blocks."""
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_calls(self) -> list[ToolCallBlock]:
        return [b for b in self.content if isinstance(b, ToolCallBlock)]

    @property
    def results(self) -> list[ToolResultBlock]:
        return [b for b in self.content if isinstance(b, ToolResultBlock)]

    @property
    def is_tool_result(self) -> bool:
        """是否为工具结果轮次 / Whether this is a tool-result turn."""
        return bool(self.content) and all(
            isinstance(b, ToolResultBlock) for b in self.content
        )


class Conversation:
    """
    对话 - 有序的轮次序列，只能追加
    Conversation - ordered sequence of turns, append-only.
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def append(self, turn: Turn) -> Turn:
        """追加轮次 / Append a turn."""
        self._turns.append(turn)
        return turn

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def pending_tool_calls(self) -> list[ToolCallBlock]:
        """
        获取最近一次助手轮次中尚未匹配结果的工具调用
        Get tool calls of the latest assistant turn that have no result yet.
        """
        for index in range(len(self._turns) - 1, -1, -1):
            turn = self._turns[index]
            if turn.role != "assistant" or not turn.tool_calls:
                continue
            answered = {
                r.call_id for later in self._turns[index + 1 :] for r in later.results
            }
            return [c for c in turn.tool_calls if c.id not in answered]
        return []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))
