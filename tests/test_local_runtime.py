import asyncio
import sys

import pytest

from sandpilot.errors import BootError, NotFoundError, WorkspaceError
from sandpilot.workspace.facade import WorkspaceFacade
from sandpilot.workspace.local import LocalSandboxRuntime


def test_local_facade_reads_writes_and_lists(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text("export {};\n", encoding="utf-8")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "index.js").write_text("", encoding="utf-8")
    facade = WorkspaceFacade(LocalSandboxRuntime(tmp_path))

    async def scenario():
        await facade.write_file("README.md", "# demo\n")
        files = await facade.list_files("**/*")
        content = await facade.read_file("src/app.ts")
        await facade.teardown()
        return files, content

    files, content = asyncio.run(scenario())
    assert files == ["README.md", "src/app.ts"]
    assert content == "export {};\n"


def test_listing_leaves_out_vcs_metadata_even_with_a_gitignore(tmp_path):
    (tmp_path / ".gitignore").write_text("node_modules/\n", encoding="utf-8")
    (tmp_path / ".git" / "objects" / "ab").mkdir(parents=True)
    (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    (tmp_path / ".git" / "objects" / "ab" / "cdef").write_text("", encoding="utf-8")
    (tmp_path / "a.ts").write_text("", encoding="utf-8")
    facade = WorkspaceFacade(LocalSandboxRuntime(tmp_path))

    files = asyncio.run(facade.list_files("**/*", ".", include_hidden=True))

    assert files == [".gitignore", "a.ts"]


def test_paths_cannot_escape_root(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (tmp_path / "secret.txt").write_text("nope", encoding="utf-8")
    facade = WorkspaceFacade(LocalSandboxRuntime(root))

    with pytest.raises(WorkspaceError):
        asyncio.run(facade.read_file("../secret.txt"))


def test_missing_file_and_missing_parent(tmp_path):
    facade = WorkspaceFacade(LocalSandboxRuntime(tmp_path))

    with pytest.raises(NotFoundError):
        asyncio.run(facade.read_file("nope.txt"))
    with pytest.raises(NotFoundError):
        asyncio.run(facade.write_file("no/such/dir/file.txt", "x"))


def test_missing_root_is_not_isolated(tmp_path):
    runtime = LocalSandboxRuntime(tmp_path / "does-not-exist")
    facade = WorkspaceFacade(runtime)

    assert not runtime.is_isolated()
    with pytest.raises(BootError):
        asyncio.run(facade.acquire())


def test_run_command_merges_stderr_and_reports_exit_code(tmp_path):
    facade = WorkspaceFacade(LocalSandboxRuntime(tmp_path))
    script = "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"

    outcome = asyncio.run(facade.execute_command(sys.executable, ["-c", script]))
    assert outcome.exit_code == 3
    assert "out" in outcome.output
    assert "err" in outcome.output


def test_command_runs_in_workspace_root_with_env(tmp_path):
    facade = WorkspaceFacade(LocalSandboxRuntime(tmp_path), base_env={"SANDPILOT_TEST": "yes"})
    script = "import os; print(os.getcwd()); print(os.environ['SANDPILOT_TEST'])"

    output = asyncio.run(facade.run_command(sys.executable, ["-c", script]))
    lines = output.strip().splitlines()
    assert lines[0] == str(tmp_path.resolve())
    assert lines[1] == "yes"


def test_unknown_command_is_workspace_error(tmp_path):
    facade = WorkspaceFacade(LocalSandboxRuntime(tmp_path))

    with pytest.raises(WorkspaceError):
        asyncio.run(facade.run_command("definitely-not-a-real-command-xyz", []))
