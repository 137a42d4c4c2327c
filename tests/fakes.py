"""
测试替身 - 内存沙箱运行时与脚本化的提供者传输
Test doubles - an in-memory sandbox runtime and a scripted provider transport.
"""

from __future__ import annotations

import asyncio
import copy
import posixpath
from collections.abc import AsyncIterator, Mapping
from typing import Any

from sandpilot.errors import BootError, NotFoundError
from sandpilot.intellect.transport import ProviderTransport
from sandpilot.workspace.runtime import (
    DirEntry,
    SandboxFileSystem,
    SandboxHandle,
    SandboxProcess,
    SandboxRuntime,
)


def _clean(path: str) -> str:
    normalized = posixpath.normpath(path).lstrip("/")
    return "" if normalized == "." else normalized


class MemoryFileSystem(SandboxFileSystem):
    def __init__(self, files: Mapping[str, str], delays: Mapping[str, float] | None = None) -> None:
        self.files = {_clean(k): v for k, v in files.items()}
        self.delays = dict(delays or {})
        self.reads: list[str] = []

    async def read_file(self, path: str) -> str:
        key = _clean(path)
        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)
        self.reads.append(key)
        if key not in self.files:
            raise NotFoundError(path)
        return self.files[key]

    async def write_file(self, path: str, text: str) -> None:
        self.files[_clean(path)] = text

    async def readdir(self, path: str) -> list[DirEntry]:
        prefix = _clean(path)
        prefix = f"{prefix}/" if prefix else ""
        children: dict[str, bool] = {}
        for key in self.files:
            if not key.startswith(prefix):
                continue
            head, sep, _ = key[len(prefix):].partition("/")
            children[head] = children.get(head, False) or bool(sep)
        if prefix and not children:
            raise NotFoundError(path)
        return [DirEntry(name, is_dir) for name, is_dir in sorted(children.items())]


class MemoryProcess(SandboxProcess):
    def __init__(self, chunks: list[str], exit_code: int, delay: float = 0.0) -> None:
        self._chunks = chunks
        self._exit_code = exit_code
        self._delay = delay
        self.killed = False

    async def output(self) -> AsyncIterator[str]:
        for chunk in self._chunks:
            if self._delay:
                await asyncio.sleep(self._delay)
            yield chunk

    async def wait(self) -> int:
        return self._exit_code

    def kill(self) -> None:
        self.killed = True


class MemoryHandle(SandboxHandle):
    def __init__(self, fs: MemoryFileSystem, commands: Mapping[str, tuple[list[str], int]]) -> None:
        self._fs = fs
        self._commands = dict(commands)
        self.spawned: list[tuple[str, list[str], dict[str, str] | None]] = []
        self.command_delay = 0.0
        self.torn_down = False

    @property
    def fs(self) -> MemoryFileSystem:
        return self._fs

    async def spawn(
        self,
        command: str,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> MemoryProcess:
        self.spawned.append((command, list(args), dict(env) if env else None))
        chunks, code = self._commands.get(command, ([f"{command}: command not found\n"], 127))
        return MemoryProcess(list(chunks), code, self.command_delay)

    async def teardown(self) -> None:
        self.torn_down = True


class MemoryRuntime(SandboxRuntime):
    def __init__(
        self,
        files: Mapping[str, str] | None = None,
        commands: Mapping[str, tuple[list[str], int]] | None = None,
        isolated: bool = True,
        fail_boots: int = 0,
        boot_delay: float = 0.01,
        delays: Mapping[str, float] | None = None,
    ) -> None:
        self.fs = MemoryFileSystem(files or {}, delays)
        self.commands = dict(commands or {})
        self.isolated = isolated
        self.fail_boots = fail_boots
        self.boot_delay = boot_delay
        self.boot_count = 0
        self.handles: list[MemoryHandle] = []

    def is_isolated(self) -> bool:
        return self.isolated

    async def boot(self) -> MemoryHandle:
        self.boot_count += 1
        await asyncio.sleep(self.boot_delay)
        if self.fail_boots > 0:
            self.fail_boots -= 1
            raise BootError("simulated boot failure")
        handle = MemoryHandle(self.fs, self.commands)
        self.handles.append(handle)
        return handle


class ScriptedTransport(ProviderTransport):
    """
    依次返回预先编写的响应；条目为异常时抛出
    Returns scripted replies in order; an exception entry is raised.
    """

    def __init__(self, replies: list[Any], repeat_last: bool = False) -> None:
        self._replies = list(replies)
        self._repeat_last = repeat_last
        self.requests: list[tuple[str, dict[str, Any]]] = []
        # 设置后 send 会一直挂起，直到被取消
        self.hang = False
        self.started = asyncio.Event()
        self.closed = False

    async def send(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.requests.append((endpoint, copy.deepcopy(payload)))
        self.started.set()
        if self.hang:
            await asyncio.Event().wait()
        await asyncio.sleep(0)
        if not self._replies:
            raise AssertionError("no scripted reply left")
        reply = self._replies[0] if self._repeat_last and len(self._replies) == 1 else self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return copy.deepcopy(reply)

    async def close(self) -> None:
        self.closed = True


# ── Anthropic 响应构造 ──────────────────────────────────────────────


def anthropic_tool_reply(*calls: tuple[str, str, dict[str, Any]], text: str | None = None) -> dict[str, Any]:
    content: list[dict[str, Any]] = []
    if text:
        content.append({"type": "text", "text": text})
    for call_id, name, arguments in calls:
        content.append({"type": "tool_use", "id": call_id, "name": name, "input": arguments})
    return {"type": "message", "role": "assistant", "content": content, "stop_reason": "tool_use"}


def anthropic_text_reply(text: str) -> dict[str, Any]:
    return {
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
    }


# ── Gemini 响应构造 ─────────────────────────────────────────────────


def gemini_call_reply(*calls: tuple[str, dict[str, Any]], text: str | None = None) -> dict[str, Any]:
    parts: list[dict[str, Any]] = []
    if text:
        parts.append({"text": text})
    for name, arguments in calls:
        parts.append({"functionCall": {"name": name, "args": arguments}})
    return {"candidates": [{"content": {"role": "model", "parts": parts}, "finishReason": "STOP"}]}


def gemini_text_reply(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"}]}
