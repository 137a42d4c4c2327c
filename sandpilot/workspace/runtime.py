"""
沙箱运行时接口 - 工作区门面所依赖的最小抽象
Sandbox runtime interface - the narrow abstraction the workspace facade uses.

运行时是文件系统的唯一事实来源，门面不做任何缓存。
The runtime is the only source of filesystem truth; the facade caches nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class DirEntry:
    """目录项 / Directory entry."""

    name: str
    is_dir: bool

    @property
    def is_file(self) -> bool:
        return not self.is_dir


class SandboxFileSystem(ABC):
    """沙箱虚拟文件系统 / Sandbox virtual filesystem."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        """
        读取文本文件，路径不是文件时抛出 NotFoundError
        Read a text file; raises NotFoundError when the path is not a file.
        """
        ...

    @abstractmethod
    async def write_file(self, path: str, text: str) -> None:
        """创建或覆盖文件 / Create or overwrite a file."""
        ...

    @abstractmethod
    async def readdir(self, path: str) -> list[DirEntry]:
        """列出目录项 / List directory entries."""
        ...


class SandboxProcess(ABC):
    """
    沙箱内的进程
    A process spawned inside the sandbox.

    output 同时包含 stdout 和 stderr。
    ``output`` carries stdout and stderr interleaved.
    """

    @abstractmethod
    def output(self) -> AsyncIterator[str]:
        """输出流 / Output stream."""
        ...

    @abstractmethod
    async def wait(self) -> int:
        """等待退出并返回退出码 / Wait for exit and return the exit code."""
        ...

    @abstractmethod
    def kill(self) -> None:
        """终止进程 / Kill the process."""
        ...


class SandboxHandle(ABC):
    """
    已启动的沙箱实例
    A booted sandbox instance.
    """

    @property
    @abstractmethod
    def fs(self) -> SandboxFileSystem:
        ...

    @abstractmethod
    async def spawn(
        self,
        command: str,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> SandboxProcess:
        """启动进程 / Spawn a process."""
        ...

    async def teardown(self) -> None:
        """释放资源 / Release resources."""
        pass


class SandboxRuntime(ABC):
    """
    沙箱运行时 - 负责启动沙箱实例
    Sandbox runtime - boots sandbox instances.
    """

    @abstractmethod
    def is_isolated(self) -> bool:
        """
        宿主是否满足沙箱要求的隔离模式（启动前检查）
        Whether the host runs under the isolation mode the sandbox needs
        (checked before booting).
        """
        ...

    @abstractmethod
    async def boot(self) -> SandboxHandle:
        """启动一个沙箱实例 / Boot a sandbox instance."""
        ...
