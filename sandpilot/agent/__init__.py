"""
智能体模块 - 编排循环、工具与终止启发式
Agent module - orchestration loop, tools and termination heuristics.
"""

from sandpilot.agent.loop_state import InvocationRecord, LoopPolicy, LoopState
from sandpilot.agent.prompts import build_system_prompt
from sandpilot.agent.runner import AgentOrchestrator, AgentState, RunOutcome, RunResult
from sandpilot.agent.tools import (
    TOOL_DESCRIPTORS,
    ToolDescriptor,
    ToolOutcome,
    ToolRegistry,
    ToolSpec,
    build_builtin_registry,
)

__all__ = [
    "AgentOrchestrator",
    "AgentState",
    "RunOutcome",
    "RunResult",
    "LoopPolicy",
    "LoopState",
    "InvocationRecord",
    "build_system_prompt",
    "TOOL_DESCRIPTORS",
    "ToolDescriptor",
    "ToolOutcome",
    "ToolRegistry",
    "ToolSpec",
    "build_builtin_registry",
]
