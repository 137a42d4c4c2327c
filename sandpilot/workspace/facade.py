"""
工作区门面 - 沙箱文件系统与进程的唯一访问入口
Workspace facade - the single point of access to the sandbox filesystem
and process spawner.

所有高层工具（读写、列举、搜索、命令）都基于这里的原语构建。
All higher-level tools (read/write, listing, search, commands) are built
from the primitives here.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import re
from collections.abc import Mapping
from dataclasses import dataclass

from sandpilot.errors import BootError, NotFoundError, WorkspaceError
from sandpilot.workspace.globbing import IgnoreMatcher, compile_glob
from sandpilot.workspace.runtime import SandboxHandle, SandboxProcess, SandboxRuntime

logger = logging.getLogger(__name__)

HIDDEN_PREFIX = "."
DEFAULT_IGNORE_FILE = ".gitignore"
DEFAULT_MAX_RESULTS = 100


@dataclass
class CommandOutcome:
    """命令执行结果 / Outcome of a finished command."""

    output: str
    exit_code: int


@dataclass
class RunningCommand:
    """
    非阻塞启动的命令：进程句柄 + 退出码任务
    A command started without blocking: process handle + exit-code task.
    """

    process: SandboxProcess
    exit_code: asyncio.Task[int]


class WorkspaceFacade:
    """
    工作区门面
    Workspace facade.

    持有唯一的沙箱实例。启动是单飞的：并发调用者共享同一个启动中的
    future，失败时清空以便之后重试，成功后永久保留。
    Owns the one sandbox instance. Booting is single-flight: concurrent
    callers share one pending future, which is cleared on failure so a later
    call can retry, and kept for good on success.
    """

    def __init__(
        self,
        runtime: SandboxRuntime,
        ignore_file: str = DEFAULT_IGNORE_FILE,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self._runtime = runtime
        self._ignore_file = ignore_file
        self._base_env = dict(base_env or {})
        self._handle: SandboxHandle | None = None
        self._pending: asyncio.Future[SandboxHandle] | None = None

    # ── 生命周期 ────────────────────────────────────────────────────

    async def acquire(self) -> SandboxHandle:
        """
        获取共享的沙箱实例，不存在时启动
        Return the shared sandbox handle, booting it if absent.
        """
        if self._handle is not None:
            return self._handle

        if self._pending is None:
            if not self._runtime.is_isolated():
                raise BootError(
                    "The sandbox requires an isolated host environment; "
                    "the isolation precondition is not met."
                )
            self._pending = asyncio.ensure_future(self._boot())

        return await asyncio.shield(self._pending)

    async def _boot(self) -> SandboxHandle:
        logger.info("正在启动沙箱...")
        try:
            handle = await self._runtime.boot()
        except BootError:
            self._pending = None
            logger.error("沙箱启动失败")
            raise
        except Exception as exc:
            self._pending = None
            logger.exception("沙箱启动失败")
            raise BootError(f"Sandbox boot failed: {exc}") from exc

        self._handle = handle
        self._pending = None
        logger.info("沙箱已就绪")
        return handle

    async def teardown(self) -> None:
        """
        关闭并丢弃沙箱实例；启动进行中时先等待其结束
        Tear down and discard the sandbox instance. A boot still in flight
        is awaited first so its handle is released too.
        """
        pending = self._pending
        if pending is not None:
            try:
                await asyncio.shield(pending)
            except BootError:
                logger.debug("进行中的启动失败，无实例需要释放")
        handle, self._handle = self._handle, None
        self._pending = None
        if handle is not None:
            await handle.teardown()
            logger.info("沙箱已释放")

    def has_instance(self) -> bool:
        return self._handle is not None

    # ── 文件操作 ────────────────────────────────────────────────────

    async def read_file(self, path: str) -> str:
        handle = await self.acquire()
        return await handle.fs.read_file(path)

    async def write_file(self, path: str, text: str) -> None:
        handle = await self.acquire()
        await handle.fs.write_file(path, text)
        logger.debug("已写入文件: %s (%d 字节)", path, len(text))

    async def list_files(
        self,
        pattern: str = "**/*",
        base_path: str = ".",
        include_hidden: bool = False,
    ) -> list[str]:
        """
        递归列出匹配 glob 的文件

        - 不包含隐藏项时跳过以 "." 开头的名称
        - 跳过命中忽略规则的路径
        - 文件按相对 base_path 的完整路径与 glob 匹配
        - 目录总是递归（受前两条约束），与 pattern 无关

        返回相对工作区根目录的路径（使用 "/" 分隔）。

        Recursively list files matching a glob.

        Hidden names are skipped unless requested, ignored paths are skipped,
        files are matched on their full path relative to ``base_path``, and
        directories are always descended into. Returned paths are relative
        to the workspace root and use "/".
        """
        handle = await self.acquire()
        matcher = compile_glob(pattern)
        ignore = await self._load_ignore_rules(handle)
        base = _normalize(base_path)

        results: list[str] = []
        stack = [""]
        while stack:
            relative_dir = stack.pop()
            directory = _join(base, relative_dir)
            try:
                entries = await handle.fs.readdir(directory or ".")
            except NotFoundError:
                if relative_dir:
                    continue
                raise
            for entry in entries:
                if not include_hidden and entry.name.startswith(HIDDEN_PREFIX):
                    continue
                relative = _join(relative_dir, entry.name)
                if ignore.is_ignored(_join(base, relative), entry.is_dir):
                    continue
                if entry.is_dir:
                    stack.append(relative)
                elif matcher.match(relative):
                    results.append(_join(base, relative))

        results.sort()
        return results

    async def _load_ignore_rules(self, handle: SandboxHandle) -> IgnoreMatcher:
        # 每次列举都重新读取，忽略文件可能已改变
        try:
            text = await handle.fs.read_file(self._ignore_file)
        except WorkspaceError:
            return IgnoreMatcher.defaults()
        return IgnoreMatcher.from_text(text)

    async def grep_search(
        self,
        pattern: str,
        case_sensitive: bool = False,
        whole_words: bool = False,
        file_pattern: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> str:
        """
        在工作区文件中搜索文本，不依赖原生 grep
        Search text across workspace files without a native grep.

        结果每行为 ``path:line:text``；达到上限且仍有匹配时追加提示行。
        Each result line is ``path:line:text``; a marker line is appended
        when the cap is hit and more matches exist.
        """
        expression = re.escape(pattern)
        if whole_words:
            expression = rf"\b{expression}\b"
        flags = 0 if case_sensitive else re.IGNORECASE
        regex = re.compile(expression, flags)
        limit = max(int(max_results), 0)

        files = await self.list_files(file_pattern or "**/*")
        handle = await self.acquire()

        matches: list[str] = []
        more = False
        for path in files:
            try:
                content = await handle.fs.read_file(path)
            except WorkspaceError:
                continue
            for number, line in enumerate(content.splitlines(), start=1):
                if not regex.search(line):
                    continue
                if len(matches) >= limit:
                    more = True
                    break
                matches.append(f"{path}:{number}:{line}")
            if more:
                break

        if not matches and not more:
            return f'No matches found for "{pattern}"'
        if more:
            matches.append(
                f"... more matches exist; showing the first {limit} results"
            )
        return "\n".join(matches)

    # ── 进程 ────────────────────────────────────────────────────────

    async def start_command(
        self,
        command: str,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> RunningCommand:
        """
        非阻塞启动命令
        Start a command without waiting for it.
        """
        handle = await self.acquire()
        merged = dict(self._base_env)
        if env:
            merged.update(env)
        process = await handle.spawn(command, list(args), merged or None)
        logger.info("已启动命令: %s %s", command, " ".join(args))
        return RunningCommand(
            process=process,
            exit_code=asyncio.ensure_future(process.wait()),
        )

    async def execute_command(
        self,
        command: str,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> CommandOutcome:
        """运行命令并收集输出与退出码 / Run a command, collect output and exit code."""
        running = await self.start_command(command, args, env)
        chunks: list[str] = []
        async for chunk in running.process.output():
            chunks.append(chunk)
        exit_code = await running.exit_code
        if exit_code != 0:
            logger.warning("命令 %s 以退出码 %d 结束", command, exit_code)
        return CommandOutcome(output="".join(chunks), exit_code=exit_code)

    async def run_command(
        self,
        command: str,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> str:
        """
        运行命令并返回合并输出，非零退出码不会抛出异常
        Run a command and return its combined output; a non-zero exit code
        does not raise.
        """
        outcome = await self.execute_command(command, args, env)
        return outcome.output


def _normalize(path: str) -> str:
    normalized = posixpath.normpath(path.replace("\\", "/")).lstrip("/")
    return "" if normalized == "." else normalized


def _join(base: str, name: str) -> str:
    if not base:
        return name
    if not name:
        return base
    return f"{base}/{name}"
