"""
内置工具 - 智能体可调用的五个固定工具
Builtin tools - the five fixed tools callable by the agent.

工具描述（ToolDescriptor）与提供者无关，启动时定义一次；
工具实现基于工作区门面构建。
Tool descriptors are provider-independent and defined once at startup;
implementations are built on the workspace facade.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from sandpilot.errors import ToolArgumentError

if TYPE_CHECKING:
    from sandpilot.workspace.facade import WorkspaceFacade

logger = logging.getLogger(__name__)

WRITE_TOOLS = frozenset({"write_file"})


@dataclass(frozen=True)
class ToolDescriptor:
    """
    工具描述 - 名称、说明与参数 JSON Schema
    Tool descriptor - name, description and parameter JSON schema.
    """

    name: str
    description: str
    parameters: MappingProxyType[str, Any]

    @property
    def is_write(self) -> bool:
        return self.name in WRITE_TOOLS

    def schema(self) -> dict[str, Any]:
        """参数 Schema 的深拷贝 / Deep copy of the parameter schema."""
        return copy.deepcopy(dict(self.parameters))


def _descriptor(name: str, description: str, parameters: dict[str, Any]) -> ToolDescriptor:
    return ToolDescriptor(name, description, MappingProxyType(parameters))


TOOL_DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    _descriptor(
        "read_file",
        "Read the contents of a file in the user's project workspace",
        {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to read in the user's project",
                }
            },
            "required": ["path"],
        },
    ),
    _descriptor(
        "write_file",
        "Write/update a file in the user's project workspace",
        {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to write in the user's project",
                },
                "content": {
                    "type": "string",
                    "description": "Content to write to the file",
                },
            },
            "required": ["path", "content"],
        },
    ),
    _descriptor(
        "list_files",
        "List files in the user's project directory with glob patterns",
        {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": 'Glob pattern to match files (e.g., "*.js", "**/*.tsx")',
                },
                "include_hidden": {
                    "type": "boolean",
                    "description": "Whether to include hidden files (default: false)",
                },
            },
            "required": ["pattern"],
        },
    ),
    _descriptor(
        "grep_search",
        "Search for text patterns across all files in the user's project. "
        "Use this to find where specific text appears before making changes.",
        {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "The text pattern to search for in the project files",
                },
                "case_sensitive": {
                    "type": "boolean",
                    "description": "Whether the search should be case sensitive (default: false)",
                },
                "whole_words": {
                    "type": "boolean",
                    "description": "Whether to match whole words only (default: false)",
                },
                "file_pattern": {
                    "type": "string",
                    "description": 'File pattern to limit search scope (e.g., "**/*.js")',
                },
                "max_results": {
                    "type": "number",
                    "description": "Maximum number of results to return (default: 100)",
                },
            },
            "required": ["pattern"],
        },
    ),
    _descriptor(
        "run_command",
        "Execute commands (lint, test, build) in the user's project",
        {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "Command to execute in the user's project",
                },
                "args": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Arguments for the command",
                },
            },
            "required": ["command", "args"],
        },
    ),
)


@dataclass
class ToolOutcome:
    """
    工具执行结果：发给模型的原始输出 + 给用户看的状态
    Tool outcome: raw output for the model + a status line for the user.
    """

    output: str
    status: str


ToolCallback = Callable[[dict[str, Any]], Awaitable[ToolOutcome]]


@dataclass
class ToolSpec:
    """
    工具规格 - 描述与实现的绑定
    Tool specification - binds a descriptor to its implementation.
    """

    descriptor: ToolDescriptor
    callback: ToolCallback
    active: bool = True

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass
class ToolRegistry:
    """
    工具注册表 - 管理所有可用的工具
    Tool registry - manages all available tools.
    """

    _tools: dict[str, ToolSpec] = field(default_factory=dict)

    def register(self, spec: ToolSpec) -> None:
        """注册工具 / Register a tool."""
        self._tools[spec.name] = spec
        logger.debug("已注册工具: %s", spec.name)

    def get(self, name: str) -> ToolSpec | None:
        """获取工具 / Get a tool."""
        spec = self._tools.get(name)
        if spec is None or not spec.active:
            return None
        return spec

    @property
    def descriptors(self) -> list[ToolDescriptor]:
        """获取活跃工具描述 / Get descriptors of active tools."""
        return [t.descriptor for t in self._tools.values() if t.active]


# ── 参数校验 ────────────────────────────────────────────────────────


def require_str(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        raise ToolArgumentError(f"'{key}' is required and must be a string")
    return value


def optional_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    return value if isinstance(value, str) and value else None


def optional_bool(args: dict[str, Any], key: str, default: bool = False) -> bool:
    value = args.get(key)
    return value if isinstance(value, bool) else default


def optional_int(args: dict[str, Any], key: str, default: int) -> int:
    value = args.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def require_str_list(args: dict[str, Any], key: str) -> list[str]:
    value = args.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ToolArgumentError(f"'{key}' is required and must be a list of strings")
    return list(value)


# ── 内置工具 ────────────────────────────────────────────────────────


def build_builtin_registry(workspace: WorkspaceFacade) -> ToolRegistry:
    """
    构建包含五个内置工具的注册表
    Build a registry holding the five builtin tools.
    """
    registry = ToolRegistry()
    register_builtin_tools(registry, workspace)
    return registry


def register_builtin_tools(registry: ToolRegistry, workspace: WorkspaceFacade) -> None:
    """
    注册内置工具到注册表
    Register builtin tools into the registry.
    """
    descriptors = {d.name: d for d in TOOL_DESCRIPTORS}

    async def read_file(args: dict[str, Any]) -> ToolOutcome:
        path = require_str(args, "path")
        content = await workspace.read_file(path)
        lines = len(content.split("\n"))
        return ToolOutcome(output=content, status=f"Read {path} ({lines} lines)")

    async def write_file(args: dict[str, Any]) -> ToolOutcome:
        path = require_str(args, "path")
        content = require_str(args, "content")
        await workspace.write_file(path, content)
        return ToolOutcome(
            output=f"File {path} written successfully.",
            status=f"Edited {path}",
        )

    async def list_files(args: dict[str, Any]) -> ToolOutcome:
        pattern = require_str(args, "pattern")
        include_hidden = optional_bool(args, "include_hidden")
        files = await workspace.list_files(pattern, ".", include_hidden)
        output = "\n".join(files) if files else f'No files found matching "{pattern}"'
        return ToolOutcome(output=output, status=f"Listed files ({len(files)} results)")

    async def grep_search(args: dict[str, Any]) -> ToolOutcome:
        pattern = require_str(args, "pattern")
        output = await workspace.grep_search(
            pattern,
            case_sensitive=optional_bool(args, "case_sensitive"),
            whole_words=optional_bool(args, "whole_words"),
            file_pattern=optional_str(args, "file_pattern"),
            max_results=optional_int(args, "max_results", 100),
        )
        hits = [
            line
            for line in output.split("\n")
            if line.strip() and ":" in line and not line.startswith("... ")
        ]
        if output.startswith("No matches found"):
            hits = []
        files = {line.split(":", 1)[0] for line in hits}
        return ToolOutcome(
            output=output,
            status=f'Found {len(hits)} matches in {len(files)} files for "{pattern}"',
        )

    async def run_command(args: dict[str, Any]) -> ToolOutcome:
        command = require_str(args, "command")
        arguments = require_str_list(args, "args")
        outcome = await workspace.execute_command(command, arguments)
        output = outcome.output or "(no output)"
        return ToolOutcome(
            output=f"{output}\n[exit code: {outcome.exit_code}]",
            status=f"Ran {command} (exit code {outcome.exit_code})",
        )

    for callback in (read_file, write_file, list_files, grep_search, run_command):
        registry.register(ToolSpec(descriptor=descriptors[callback.__name__], callback=callback))
