"""
智能体编排器 - 驱动一次用户提交直到最终的助手回复
Agent orchestrator - drives one user submission to a final assistant reply.

流程：
1. 追加用户轮次
2. 基于当前文件列表构建系统提示词（每次提交都重新获取）
3. 通过协议适配器序列化请求并发送
4. 解析响应，立即推送文本片段
5. 无工具调用则结束
6. 否则并发执行工具调用，按请求顺序收集结果
7. 追加一个工具结果轮次，回到第 3 步

Flow:
1. Append the user turn
2. Build the system prompt from the current file listing (per submission)
3. Serialize and send the request through the protocol adapter
4. Parse the reply and publish its text fragments right away
5. Finish when no tool calls are present
6. Otherwise run the tool calls concurrently, collecting results in
   request order
7. Append one tool-result turn and go back to step 3
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sandpilot.agent.loop_state import InvocationRecord, LoopPolicy, LoopState
from sandpilot.agent.prompts import build_system_prompt
from sandpilot.agent.tools import ToolRegistry, build_builtin_registry
from sandpilot.errors import (
    AgentBusyError,
    CancellationError,
    ProviderError,
    ToolArgumentError,
    WorkspaceError,
)
from sandpilot.intellect.base import ParsedToolCall, ProtocolAdapter
from sandpilot.intellect.transport import ProviderTransport
from sandpilot.kernel.signal_hub import SignalHub, SignalKind
from sandpilot.message.components import TextBlock, ToolCallBlock, ToolResultBlock
from sandpilot.message.conversation import Conversation, Turn
from sandpilot.workspace.facade import WorkspaceFacade

logger = logging.getLogger(__name__)

STOPPED_NOTICE = "🛑 Generation stopped by user."
TRUNCATION_NOTICE = "[Note: Function call loop was stopped to prevent infinite iteration]"
COMPLETION_NOTICE = (
    "✅ Task appears complete; stopping here to avoid repeating the same tool calls."
)
EMPTY_REPLY_NOTICE = "(no response from the model)"
SKIPPED_OUTPUT = "Skipped: the tool loop ended before this call was executed."
CANCELLED_OUTPUT = "Cancelled: generation was stopped by the user before this call started."


class AgentState(str, Enum):
    """编排器状态 / Orchestrator state."""

    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    CANCELLED = "cancelled"


class RunOutcome(str, Enum):
    """一次运行的结束方式 / How a run ended."""

    COMPLETED = "completed"
    TRUNCATED = "truncated"
    REPETITION_GUARD = "repetition_guard"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RunResult:
    """
    一次提交的运行结果
    Result of one submission.
    """

    outcome: RunOutcome
    round_trips: int
    final_turn: Turn | None = None

    @property
    def text(self) -> str:
        return self.final_turn.text if self.final_turn is not None else ""


class AgentOrchestrator:
    """
    智能体编排器

    只面向 ProtocolAdapter 接口编写，两种协议共用同一个循环。
    同一时间只允许一次运行；运行结束后对话保持可继续状态。

    Agent orchestrator.

    Written against the ProtocolAdapter interface only, so both protocols
    share one loop. One run at a time; the conversation is always left
    resumable when a run ends.
    """

    def __init__(
        self,
        adapter: ProtocolAdapter,
        transport: ProviderTransport,
        workspace: WorkspaceFacade,
        registry: ToolRegistry | None = None,
        policy: LoopPolicy | None = None,
        hub: SignalHub | None = None,
    ) -> None:
        self._adapter = adapter
        self._transport = transport
        self._workspace = workspace
        self._registry = registry or build_builtin_registry(workspace)
        self._policy = policy or LoopPolicy()
        self.hub = hub or SignalHub()
        self._conversation = Conversation()
        self._state = AgentState.IDLE
        self._running = False
        self._cancel_event = asyncio.Event()
        self._inflight: asyncio.Future[dict[str, Any]] | None = None

    # ── 对外属性 ────────────────────────────────────────────────────

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def adapter(self) -> ProtocolAdapter:
        return self._adapter

    # ── 运行控制 ────────────────────────────────────────────────────

    async def submit(self, text: str) -> RunResult:
        """
        提交用户文本并运行直到结束
        Submit user text and run until the run ends.
        """
        if self._running:
            raise AgentBusyError("An agent run is already in progress")

        self._running = True
        self._cancel_event = asyncio.Event()
        loop = LoopState(policy=self._policy)
        self._append(Turn.user_text(text))
        logger.info("收到用户提交 (%d 字符)", len(text))

        try:
            outcome = await self._drive(loop)
            final_state = AgentState.DONE
        except CancellationError:
            logger.info("运行已被用户停止")
            self._append(Turn.assistant_text(STOPPED_NOTICE, synthetic=True))
            outcome = RunOutcome.CANCELLED
            final_state = AgentState.CANCELLED
        except (ProviderError, WorkspaceError) as exc:
            logger.error("运行失败: %s", exc)
            self._append(Turn.assistant_text(f"❌ Error: {exc}", synthetic=True))
            outcome = RunOutcome.FAILED
            final_state = AgentState.DONE
        finally:
            self._inflight = None
            self._running = False

        self._set_state(final_state)
        self._set_state(AgentState.IDLE)
        logger.info("运行结束: %s (往返 %d 次)", outcome.value, loop.round_trips)
        return RunResult(
            outcome=outcome,
            round_trips=loop.round_trips,
            final_turn=self._conversation.last,
        )

    def cancel(self) -> bool:
        """
        请求停止当前运行

        中止进行中的提供者请求；已开始的工具调用会执行完毕。
        返回是否有运行被请求停止。

        Request the active run to stop. An in-flight provider request is
        aborted; tool calls that already started are allowed to finish.
        Returns whether a run was asked to stop.
        """
        if not self._running:
            return False
        self._cancel_event.set()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        logger.info("已请求停止生成")
        return True

    # ── 主循环 ──────────────────────────────────────────────────────

    async def _drive(self, loop: LoopState) -> RunOutcome:
        self._check_cancelled()
        files = await self._workspace.list_files("**/*", ".", include_hidden=True)
        system_prompt = build_system_prompt(files)

        while True:
            self._check_cancelled()
            loop.begin_round_trip()
            self._set_state(AgentState.AWAITING_REPLY)
            logger.debug(
                "智能体往返 %d/%d", loop.round_trips, self._policy.max_round_trips
            )

            wire_reply = await self._request(system_prompt)
            reply = self._adapter.parse_reply(wire_reply)
            calls = self._assign_ids(reply.tool_calls)

            blocks: list[Any] = [TextBlock(text=t) for t in reply.text_fragments if t]
            blocks.extend(
                ToolCallBlock(id=call.id, name=call.name, arguments=call.arguments)
                for call in calls
            )
            if blocks:
                self._append(Turn(role="assistant", content=tuple(blocks)))

            if not calls:
                if not blocks:
                    logger.warning("模型返回了空响应")
                    self._append(Turn.assistant_text(EMPTY_REPLY_NOTICE, synthetic=True))
                if not reply.is_terminal:
                    logger.warning("响应未终止但没有工具调用 (stop_reason=%s)", reply.stop_reason)
                return RunOutcome.COMPLETED

            records = [InvocationRecord.from_call(c.name, c.arguments) for c in calls]
            if loop.check_batch(records):
                logger.info("检测到重复的工具调用，提前结束循环")
                self._append_skipped(calls, SKIPPED_OUTPUT)
                self._append(Turn.assistant_text(self._completion_notice(loop), synthetic=True))
                return RunOutcome.REPETITION_GUARD

            if loop.at_cap:
                logger.warning("已达到最大往返次数 (%d)，停止循环", self._policy.max_round_trips)
                self._append_skipped(calls, SKIPPED_OUTPUT)
                self._append(Turn.assistant_text(TRUNCATION_NOTICE, synthetic=True))
                return RunOutcome.TRUNCATED

            self._set_state(AgentState.EXECUTING_TOOLS)
            results = await asyncio.gather(*(self._execute_call(call) for call in calls))
            loop.record_batch(
                record
                for record, result in zip(records, results)
                if result.output != CANCELLED_OUTPUT
            )
            self._append(Turn.tool_results(self._ordered(calls, list(results))))

    async def _request(self, system_prompt: str) -> dict[str, Any]:
        payload = self._adapter.serialize_request(
            system_prompt,
            self._conversation.turns,
            self._registry.descriptors,
        )
        self._inflight = asyncio.ensure_future(
            self._transport.send(self._adapter.endpoint, payload)
        )
        try:
            return await self._inflight
        except asyncio.CancelledError:
            if self._cancel_event.is_set() and self._inflight.cancelled():
                raise CancellationError("Generation stopped by user") from None
            raise
        finally:
            self._inflight = None

    # ── 工具执行 ────────────────────────────────────────────────────

    async def _execute_call(self, call: ParsedToolCall) -> ToolResultBlock:
        """
        执行单个工具调用，失败转换为错误结果
        Execute one tool call; failures become error results.
        """
        call_id = call.id or ""
        if self._cancel_event.is_set():
            return ToolResultBlock(
                call_id=call_id, name=call.name, output=CANCELLED_OUTPUT, is_error=True
            )

        if call.error:
            return self._tool_error(call, call.error)

        spec = self._registry.get(call.name)
        if spec is None:
            return self._tool_error(call, f"Unknown tool '{call.name}'")

        try:
            outcome = await spec.callback(dict(call.arguments))
        except (ToolArgumentError, WorkspaceError) as exc:
            logger.warning("工具 '%s' 执行失败: %s", call.name, exc)
            return self._tool_error(call, str(exc))
        except Exception as exc:
            logger.exception("工具 '%s' 执行失败", call.name)
            return self._tool_error(call, str(exc) or type(exc).__name__)

        self.hub.emit_nowait(SignalKind.TOOL_STATUS, outcome.status, source="agent")
        return ToolResultBlock(call_id=call_id, name=call.name, output=outcome.output)

    def _tool_error(self, call: ParsedToolCall, message: str) -> ToolResultBlock:
        self.hub.emit_nowait(SignalKind.TOOL_STATUS, f"Error: {call.name}", source="agent")
        return ToolResultBlock(
            call_id=call.id or "",
            name=call.name,
            output=f"Error: {message}",
            is_error=True,
        )

    @staticmethod
    def _ordered(
        calls: list[ParsedToolCall], results: list[ToolResultBlock]
    ) -> list[ToolResultBlock]:
        # 按请求顺序、以调用 id 对齐结果
        by_id = {result.call_id: result for result in results}
        return [by_id[call.id or ""] for call in calls]

    def _append_skipped(self, calls: list[ParsedToolCall], output: str) -> None:
        self._append(
            Turn.tool_results(
                [
                    ToolResultBlock(
                        call_id=call.id or "", name=call.name, output=output, is_error=True
                    )
                    for call in calls
                ]
            )
        )

    @staticmethod
    def _assign_ids(calls: list[ParsedToolCall]) -> list[ParsedToolCall]:
        # 协议未提供（或重复）的调用 id 由本地生成
        seen: set[str] = set()
        assigned: list[ParsedToolCall] = []
        for call in calls:
            if not call.id or call.id in seen:
                call = ParsedToolCall(
                    name=call.name,
                    arguments=call.arguments,
                    id=f"call_{uuid.uuid4().hex[:12]}",
                    error=call.error,
                )
            seen.add(call.id)
            assigned.append(call)
        return assigned

    @staticmethod
    def _completion_notice(loop: LoopState) -> str:
        if loop.writes:
            return f"{COMPLETION_NOTICE} Modified {loop.writes} file(s) during this run."
        return COMPLETION_NOTICE

    # ── 辅助 ────────────────────────────────────────────────────────

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise CancellationError("Generation stopped by user")

    def _append(self, turn: Turn) -> Turn:
        self._conversation.append(turn)
        self.hub.emit_nowait(SignalKind.TURN_APPENDED, turn, source="agent")
        return turn

    def _set_state(self, state: AgentState) -> None:
        if state is self._state:
            return
        self._state = state
        self.hub.emit_nowait(SignalKind.RUN_STATE, state, source="agent")
