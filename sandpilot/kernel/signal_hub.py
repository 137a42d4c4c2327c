"""
信号中枢 - 编排器向界面推送对话事件的发布/订阅通道
Signal Hub - publish/subscribe channel the orchestrator pushes transcript
events through.

编排器使用 emit_nowait 投递（发后即忘），处理器的异常只记录日志，
绝不会阻塞或中断编排器。
The orchestrator delivers with ``emit_nowait`` (fire-and-forget); handler
exceptions are only logged and never block or break the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class SignalPriority(Enum):
    """信号处理器优先级 / Signal handler priority."""

    HIGHEST = 0
    HIGH = 25
    NORMAL = 50
    LOW = 75
    LOWEST = 100


class SignalKind(str, Enum):
    """
    预定义的信号类型 / Predefined signal kinds.
    """

    # 对话中追加了一个轮次，payload 为 Turn
    TURN_APPENDED = "turn.appended"
    # 工具状态字符串，payload 为 str
    TOOL_STATUS = "tool.status"
    # 编排器状态变化，payload 为 AgentState
    RUN_STATE = "run.state"


@dataclass
class Signal:
    """
    信号对象 - 在系统中传递的消息载体
    Signal object - the message carrier in the system.
    """

    kind: SignalKind | str
    payload: Any = None
    source: str = ""
    # 附加元数据
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SlotBinding:
    """
    槽绑定 - 将处理器绑定到信号上
    Slot binding - binds a handler to a signal.
    """

    signal_kind: SignalKind | str
    handler: Callable[..., Any]
    priority: SignalPriority = SignalPriority.NORMAL
    # 唯一标识
    slot_id: str = ""


def _kind_key(kind: SignalKind | str) -> str:
    return kind.value if isinstance(kind, SignalKind) else kind


class SignalHub:
    """
    信号中枢 - 管理所有信号的订阅和分发
    Signal hub - manages all signal subscriptions and dispatching.
    """

    def __init__(self) -> None:
        # 信号类型 -> 槽绑定列表
        self._slots: dict[str, list[SlotBinding]] = {}
        self._counter = 0
        # 尚未完成的投递任务（保持引用，避免被回收）
        self._pending: set[asyncio.Task[Signal]] = set()

    def connect(
        self,
        signal_kind: SignalKind | str,
        handler: Callable[..., Any],
        priority: SignalPriority = SignalPriority.NORMAL,
    ) -> str:
        """
        连接处理器到信号，返回 slot_id
        Connect a handler to a signal kind; returns the slot id.
        """
        kind_key = _kind_key(signal_kind)
        self._counter += 1
        slot_id = f"slot_{self._counter}"

        bindings = self._slots.setdefault(kind_key, [])
        bindings.append(
            SlotBinding(
                signal_kind=signal_kind,
                handler=handler,
                priority=priority,
                slot_id=slot_id,
            )
        )
        # 按优先级排序
        bindings.sort(key=lambda b: b.priority.value)

        logger.debug("已连接槽 %s 到信号 %s", slot_id, kind_key)
        return slot_id

    def disconnect(self, slot_id: str) -> bool:
        """断开指定 slot 的连接 / Disconnect a specific slot."""
        for bindings in self._slots.values():
            for binding in bindings:
                if binding.slot_id == slot_id:
                    bindings.remove(binding)
                    logger.debug("已断开槽 %s", slot_id)
                    return True
        return False

    async def emit(self, signal: Signal) -> Signal:
        """
        发射信号，依次触发所有匹配的处理器
        Emit a signal, triggering all matching handlers in order.
        """
        kind_key = _kind_key(signal.kind)
        for binding in list(self._slots.get(kind_key, [])):
            try:
                result = binding.handler(signal)
                if asyncio.iscoroutine(result) or asyncio.isfuture(result):
                    await result
            except Exception:
                logger.exception(
                    "信号处理器 %s 处理 %s 时出错",
                    binding.slot_id,
                    kind_key,
                )
        return signal

    def emit_nowait(
        self,
        kind: SignalKind | str,
        payload: Any = None,
        source: str = "",
        **metadata: Any,
    ) -> None:
        """
        发后即忘：在事件循环中调度投递，不等待处理器
        Fire-and-forget: schedule delivery on the loop without awaiting.
        """
        if not self._slots.get(_kind_key(kind)):
            return
        signal = Signal(kind=kind, payload=payload, source=source, metadata=metadata)
        task = asyncio.ensure_future(self.emit(signal))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """等待所有已调度的投递完成 / Wait for all scheduled deliveries."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def slot_count(self, signal_kind: SignalKind | str | None = None) -> int:
        """获取槽绑定数量 / Get the number of slot bindings."""
        if signal_kind is None:
            return sum(len(bindings) for bindings in self._slots.values())
        return len(self._slots.get(_kind_key(signal_kind), []))

    def clear(self) -> None:
        """清除所有槽绑定 / Clear all slot bindings."""
        self._slots.clear()
