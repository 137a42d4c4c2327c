"""
工作区模块 - 沙箱文件系统与进程的门面
Workspace module - facade over the sandbox filesystem and processes.
"""

from sandpilot.workspace.facade import CommandOutcome, RunningCommand, WorkspaceFacade
from sandpilot.workspace.globbing import (
    DEFAULT_IGNORE_PATTERNS,
    GitignoreRule,
    IgnoreMatcher,
    compile_glob,
)
from sandpilot.workspace.local import LocalSandboxRuntime
from sandpilot.workspace.runtime import (
    DirEntry,
    SandboxFileSystem,
    SandboxHandle,
    SandboxProcess,
    SandboxRuntime,
)

__all__ = [
    "WorkspaceFacade",
    "CommandOutcome",
    "RunningCommand",
    "LocalSandboxRuntime",
    "SandboxRuntime",
    "SandboxHandle",
    "SandboxFileSystem",
    "SandboxProcess",
    "DirEntry",
    "GitignoreRule",
    "IgnoreMatcher",
    "DEFAULT_IGNORE_PATTERNS",
    "compile_glob",
]
