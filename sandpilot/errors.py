"""
异常定义 - 框架内所有类型化错误
Error definitions - all typed errors of the framework.

工具层错误会被转换为工具结果文本返回给模型；
提供者错误、启动错误和取消会结束当前运行。
Tool-level errors are turned into tool-result text for the model;
provider errors, boot errors and cancellation end the current run.
"""

from __future__ import annotations


class SandPilotError(Exception):
    """所有框架错误的基类 / Base class of all framework errors."""


class WorkspaceError(SandPilotError):
    """工作区操作失败 / A workspace operation failed."""


class BootError(WorkspaceError):
    """
    沙箱无法启动（例如缺少隔离前置条件）
    The sandbox could not start (e.g. isolation precondition unmet).
    """


class NotFoundError(WorkspaceError):
    """路径不是一个文件 / The path does not resolve to a file."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class ToolArgumentError(SandPilotError):
    """工具参数缺失或类型错误 / Missing or malformed tool argument."""


class ProviderError(SandPilotError):
    """提供者调用失败 / A provider round-trip failed."""


class ProviderHttpError(ProviderError):
    """
    中继或提供者返回了错误状态
    The relay or provider returned an error status.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ProviderReplyError(ProviderError):
    """提供者响应无法解析 / The provider reply could not be parsed."""


class CancellationError(SandPilotError):
    """运行被用户停止 / The run was stopped by the user."""


class AgentBusyError(SandPilotError):
    """已有一个运行中的智能体 / An agent run is already active."""
