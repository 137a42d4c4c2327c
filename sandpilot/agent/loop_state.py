"""
循环状态 - 智能体循环的终止启发式
Loop state - termination heuristics of the agent loop.

两条规则，对两种协议一致：
- 每次提交的往返次数上限
- 最近若干次工具调用上的重复检测

Two rules, identical for both protocols:
- a cap on round-trips per submission
- repetition detection over the most recent tool invocations
"""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sandpilot.agent.tools import WRITE_TOOLS

DEFAULT_MAX_ROUND_TRIPS = 10
DEFAULT_REPETITION_WINDOW = 6
DEFAULT_MAX_REPEATS = 2
DEFAULT_MAX_SAME_TOOL = 4


@dataclass(frozen=True)
class LoopPolicy:
    """
    循环策略 - 可配置的阈值
    Loop policy - tunable thresholds.
    """

    max_round_trips: int = DEFAULT_MAX_ROUND_TRIPS
    repetition_window: int = DEFAULT_REPETITION_WINDOW
    max_repeats: int = DEFAULT_MAX_REPEATS
    max_same_tool: int = DEFAULT_MAX_SAME_TOOL

    @classmethod
    def from_config(cls, section: Mapping[str, Any] | None) -> LoopPolicy:
        """从配置节 ``agent`` 构建 / Build from the ``agent`` config section."""
        section = section or {}
        return cls(
            max_round_trips=max(int(section.get("max_round_trips", DEFAULT_MAX_ROUND_TRIPS)), 1),
            repetition_window=max(
                int(section.get("repetition_window", DEFAULT_REPETITION_WINDOW)), 1
            ),
            max_repeats=max(int(section.get("max_repeats", DEFAULT_MAX_REPEATS)), 1),
            max_same_tool=max(int(section.get("max_same_tool", DEFAULT_MAX_SAME_TOOL)), 1),
        )


@dataclass(frozen=True)
class InvocationRecord:
    """
    一次工具调用的记录：名称 + 序列化参数
    Record of one tool invocation: name + serialized arguments.
    """

    name: str
    signature: str
    path: str | None = None

    @classmethod
    def from_call(cls, name: str, arguments: Mapping[str, Any]) -> InvocationRecord:
        signature = json.dumps(arguments, sort_keys=True, ensure_ascii=False, default=str)
        path = arguments.get("path")
        return cls(
            name=name,
            signature=f"{name}:{signature}",
            path=path if isinstance(path, str) else None,
        )

    @property
    def is_write(self) -> bool:
        return self.name in WRITE_TOOLS


@dataclass
class LoopState:
    """
    一次提交内的循环状态，每轮迭代都会更新
    Loop state of one submission, updated on every iteration.
    """

    policy: LoopPolicy = field(default_factory=LoopPolicy)
    round_trips: int = 0
    # 本次提交中写入的总次数
    writes: int = 0
    history: deque[InvocationRecord] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.history = deque(self.history, maxlen=self.policy.repetition_window)

    def begin_round_trip(self) -> None:
        self.round_trips += 1

    @property
    def at_cap(self) -> bool:
        """本轮已是最后一次允许的往返 / This round-trip is the last one allowed."""
        return self.round_trips >= self.policy.max_round_trips

    def is_repetitive(self, record: InvocationRecord) -> bool:
        """
        判断一次调用是否在窗口内重复

        - 写操作：窗口内对同一路径的写入已达 max_repeats 次
        - 其他操作：窗口内无写入，且相同调用已达 max_repeats 次，
          或同名工具已达 max_same_tool 次

        Whether an invocation repeats within the window. A write is flagged
        when the window already holds ``max_repeats`` writes to the same
        path; any other call is flagged when the window holds no write and
        already holds ``max_repeats`` identical invocations or
        ``max_same_tool`` invocations of the same tool.
        """
        limit = self.policy.max_repeats
        if record.is_write:
            same_path = sum(
                1 for r in self.history if r.is_write and r.path == record.path
            )
            return same_path >= limit
        if any(r.is_write for r in self.history):
            return False
        identical = sum(1 for r in self.history if r.signature == record.signature)
        same_tool = sum(1 for r in self.history if r.name == record.name)
        return identical >= limit or same_tool >= self.policy.max_same_tool

    def check_batch(self, records: Iterable[InvocationRecord]) -> bool:
        """一批调用中任一重复即返回 True / True when any call in a batch repeats."""
        return any(self.is_repetitive(record) for record in records)

    def record_batch(self, records: Iterable[InvocationRecord]) -> None:
        for record in records:
            self.history.append(record)
            if record.is_write:
                self.writes += 1
