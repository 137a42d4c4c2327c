import asyncio

import pytest

from fakes import MemoryRuntime
from sandpilot.agent.tools import (
    TOOL_DESCRIPTORS,
    build_builtin_registry,
    optional_int,
    require_str_list,
)
from sandpilot.errors import ToolArgumentError
from sandpilot.workspace.facade import WorkspaceFacade


def make_registry(files=None, commands=None):
    runtime = MemoryRuntime(files, commands=commands)
    return runtime, build_builtin_registry(WorkspaceFacade(runtime))


def call(registry, name, arguments):
    spec = registry.get(name)
    assert spec is not None
    return asyncio.run(spec.callback(arguments))


def test_descriptors_are_the_five_builtin_tools():
    assert [d.name for d in TOOL_DESCRIPTORS] == [
        "read_file",
        "write_file",
        "list_files",
        "grep_search",
        "run_command",
    ]
    assert [d.name for d in TOOL_DESCRIPTORS if d.is_write] == ["write_file"]


def test_registry_hides_inactive_tools():
    _, registry = make_registry()
    registry.get("run_command").active = False

    assert registry.get("run_command") is None
    assert "run_command" not in [d.name for d in registry.descriptors]


def test_read_file_status_counts_lines():
    _, registry = make_registry({"a.ts": "one\ntwo\nthree"})

    outcome = call(registry, "read_file", {"path": "a.ts"})
    assert outcome.output == "one\ntwo\nthree"
    assert outcome.status == "Read a.ts (3 lines)"


def test_write_file_status():
    runtime, registry = make_registry()

    outcome = call(registry, "write_file", {"path": "b.ts", "content": "x"})
    assert outcome.status == "Edited b.ts"
    assert runtime.fs.files["b.ts"] == "x"


def test_list_files_status_and_empty_output():
    _, registry = make_registry({"a.ts": "", "b.ts": ""})

    outcome = call(registry, "list_files", {"pattern": "*.ts"})
    assert outcome.output == "a.ts\nb.ts"
    assert outcome.status == "Listed files (2 results)"

    empty = call(registry, "list_files", {"pattern": "*.py"})
    assert empty.output == 'No files found matching "*.py"'
    assert empty.status == "Listed files (0 results)"


def test_grep_search_status_counts_matches_and_files():
    _, registry = make_registry({"a.ts": "Sign In\nsign in\n", "b.ts": "SIGN IN\n", "c.ts": "nothing"})

    outcome = call(registry, "grep_search", {"pattern": "sign in"})
    assert outcome.status == 'Found 3 matches in 2 files for "sign in"'

    none = call(registry, "grep_search", {"pattern": "absent"})
    assert none.status == 'Found 0 matches in 0 files for "absent"'


def test_run_command_output_and_status():
    _, registry = make_registry(commands={"npm": (["failed\n"], 2), "true": ([], 0)})

    outcome = call(registry, "run_command", {"command": "npm", "args": ["test"]})
    assert outcome.output == "failed\n\n[exit code: 2]"
    assert outcome.status == "Ran npm (exit code 2)"

    quiet = call(registry, "run_command", {"command": "true", "args": []})
    assert quiet.output == "(no output)\n[exit code: 0]"


def test_missing_arguments_raise_tool_argument_error():
    _, registry = make_registry()

    with pytest.raises(ToolArgumentError):
        call(registry, "read_file", {})
    with pytest.raises(ToolArgumentError):
        call(registry, "run_command", {"command": "npm"})


def test_argument_validators():
    assert optional_int({"n": 5.0}, "n", 100) == 5
    assert optional_int({"n": "7"}, "n", 100) == 7
    assert optional_int({"n": True}, "n", 100) == 100
    assert optional_int({}, "n", 100) == 100
    assert require_str_list({"args": ["a", "b"]}, "args") == ["a", "b"]
    with pytest.raises(ToolArgumentError):
        require_str_list({"args": "a b"}, "args")
