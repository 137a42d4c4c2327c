"""
本地沙箱运行时 - 以一个目录作为沙箱根目录
Local sandbox runtime - uses one directory as the sandbox root.

所有路径都被限制在根目录之内，进程在根目录中启动，
stderr 合并到 stdout。
All paths are confined to the root directory, processes are spawned in the
root, and stderr is merged into stdout.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Mapping
from pathlib import Path

from sandpilot.errors import BootError, NotFoundError, WorkspaceError
from sandpilot.workspace.runtime import (
    DirEntry,
    SandboxFileSystem,
    SandboxHandle,
    SandboxProcess,
    SandboxRuntime,
)

logger = logging.getLogger(__name__)

# 版本控制元数据目录不属于沙箱内容
VCS_METADATA_DIRS = frozenset({".git", ".svn", ".hg"})


class LocalFileSystem(SandboxFileSystem):
    """
    本地文件系统视图
    Local filesystem view rooted at the sandbox directory.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def resolve(self, path: str) -> Path:
        """
        解析沙箱内路径，禁止越出根目录
        Resolve a sandbox path; escaping the root is rejected.
        """
        candidate = (self._root / path.lstrip("/")).resolve()
        if candidate != self._root and self._root not in candidate.parents:
            raise WorkspaceError(f"Path escapes the workspace: {path}")
        return candidate

    async def read_file(self, path: str) -> str:
        target = self.resolve(path)
        if not target.is_file():
            raise NotFoundError(path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise WorkspaceError(f"Cannot read {path}: {exc}") from exc

    async def write_file(self, path: str, text: str) -> None:
        target = self.resolve(path)
        if target.is_dir():
            raise WorkspaceError(f"Cannot write {path}: is a directory")
        if not target.parent.is_dir():
            raise NotFoundError(str(Path(path).parent))
        try:
            await asyncio.to_thread(target.write_text, text, encoding="utf-8")
        except OSError as exc:
            raise WorkspaceError(f"Cannot write {path}: {exc}") from exc

    async def readdir(self, path: str) -> list[DirEntry]:
        target = self.resolve(path)
        if not target.is_dir():
            raise NotFoundError(path)
        entries: list[DirEntry] = []
        for child in sorted(target.iterdir(), key=lambda p: p.name):
            # 符号链接目录不递归，避免越出根目录
            is_dir = child.is_dir() and not child.is_symlink()
            if is_dir and child.name in VCS_METADATA_DIRS:
                continue
            entries.append(DirEntry(name=child.name, is_dir=is_dir))
        return entries


class LocalProcess(SandboxProcess):
    """asyncio 子进程包装 / asyncio subprocess wrapper."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    async def output(self) -> AsyncIterator[str]:
        stream = self._process.stdout
        if stream is None:
            return
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            yield chunk.decode("utf-8", errors="replace")

    async def wait(self) -> int:
        return await self._process.wait()

    def kill(self) -> None:
        if self._process.returncode is None:
            self._process.kill()


class LocalSandboxHandle(SandboxHandle):
    """本地沙箱实例 / Local sandbox instance."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._fs = LocalFileSystem(root)
        self._processes: list[LocalProcess] = []

    @property
    def root(self) -> Path:
        return self._root

    @property
    def fs(self) -> LocalFileSystem:
        return self._fs

    async def spawn(
        self,
        command: str,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> LocalProcess:
        merged_env = dict(os.environ)
        if env:
            merged_env.update(env)
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(self._root),
                env=merged_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise WorkspaceError(f"Cannot spawn {command}: {exc}") from exc
        wrapped = LocalProcess(process)
        self._processes.append(wrapped)
        return wrapped

    async def teardown(self) -> None:
        for process in self._processes:
            process.kill()
        self._processes.clear()
        logger.info("本地沙箱已关闭: %s", self._root)


class LocalSandboxRuntime(SandboxRuntime):
    """
    本地沙箱运行时
    Local sandbox runtime.

    隔离前置条件：根目录存在，且不是文件系统根目录或用户主目录。
    Isolation precondition: the root exists and is neither the filesystem
    root nor the user's home directory.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def is_isolated(self) -> bool:
        if not self._root.is_dir():
            return False
        if self._root == Path(self._root.anchor):
            return False
        return self._root != Path.home().resolve()

    async def boot(self) -> LocalSandboxHandle:
        if not self._root.is_dir():
            raise BootError(f"Workspace root does not exist: {self._root}")
        logger.info("本地沙箱已启动: %s", self._root)
        return LocalSandboxHandle(self._root)
