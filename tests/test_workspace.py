import asyncio

import pytest

from fakes import MemoryRuntime
from sandpilot.errors import BootError, NotFoundError
from sandpilot.workspace.facade import WorkspaceFacade


def make_facade(files=None, **kwargs):
    runtime = MemoryRuntime(files, **kwargs)
    return runtime, WorkspaceFacade(runtime)


# ── 启动 ────────────────────────────────────────────────────────────


def test_concurrent_acquire_boots_once():
    runtime, facade = make_facade({"a.ts": ""})

    async def scenario():
        return await asyncio.gather(facade.acquire(), facade.acquire(), facade.acquire())

    first, second, third = asyncio.run(scenario())
    assert first is second is third
    assert runtime.boot_count == 1
    assert facade.has_instance()


def test_isolation_precondition_checked_before_boot():
    runtime, facade = make_facade(isolated=False)

    with pytest.raises(BootError):
        asyncio.run(facade.acquire())
    assert runtime.boot_count == 0


def test_failed_boot_is_cleared_so_next_call_retries():
    runtime, facade = make_facade({"a.ts": ""}, fail_boots=1)

    async def scenario():
        results = await asyncio.gather(facade.acquire(), facade.acquire(), return_exceptions=True)
        handle = await facade.acquire()
        return results, handle

    results, handle = asyncio.run(scenario())
    assert all(isinstance(r, BootError) for r in results)
    assert handle is runtime.handles[0]
    assert runtime.boot_count == 2


def test_teardown_discards_instance():
    runtime, facade = make_facade({"a.ts": ""})

    async def scenario():
        first = await facade.acquire()
        await facade.teardown()
        second = await facade.acquire()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is not second
    assert first.torn_down
    assert runtime.boot_count == 2


def test_teardown_during_boot_releases_the_booting_instance():
    runtime, facade = make_facade({"a.ts": ""}, boot_delay=0.05)

    async def scenario():
        booting = asyncio.ensure_future(facade.acquire())
        await asyncio.sleep(0.01)
        await facade.teardown()
        first = await booting
        second = await facade.acquire()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is not second
    assert first.torn_down
    assert not second.torn_down
    assert runtime.boot_count == 2
    assert facade.has_instance()


def test_teardown_after_failed_boot_in_flight_leaves_no_instance():
    runtime, facade = make_facade({"a.ts": ""}, fail_boots=1, boot_delay=0.05)

    async def scenario():
        booting = asyncio.ensure_future(facade.acquire())
        await asyncio.sleep(0.01)
        await facade.teardown()
        with pytest.raises(BootError):
            await booting

    asyncio.run(scenario())
    assert not facade.has_instance()
    assert runtime.boot_count == 1


# ── 文件 ────────────────────────────────────────────────────────────


def test_write_then_read_round_trip():
    _, facade = make_facade()

    async def scenario():
        await facade.write_file("src/new.ts", "export const x = 1;\n")
        return await facade.read_file("src/new.ts")

    assert asyncio.run(scenario()) == "export const x = 1;\n"


def test_read_missing_file_raises_not_found():
    _, facade = make_facade({"a.ts": ""})

    with pytest.raises(NotFoundError) as excinfo:
        asyncio.run(facade.read_file("missing.ts"))
    assert "missing.ts" in str(excinfo.value)


# ── 列举 ────────────────────────────────────────────────────────────


def test_list_files_default_rules_scenario():
    _, facade = make_facade({"a.ts": "", "node_modules/x.js": "", ".env": "SECRET=1"})

    assert asyncio.run(facade.list_files("**/*", ".", False)) == ["a.ts"]


def test_list_files_include_hidden_still_applies_ignore_rules():
    _, facade = make_facade({"a.ts": "", ".prettierrc": "{}", ".env": "SECRET=1"})

    assert asyncio.run(facade.list_files("**/*", ".", True)) == [".prettierrc", "a.ts"]


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("*.ts", ["a.ts"]),
        ("src/*.ts", ["src/b.ts"]),
        ("src/*/*.ts", ["src/c/d.ts"]),
        ("**/*.ts", ["a.ts", "src/b.ts", "src/c/d.ts"]),
    ],
)
def test_list_files_glob_depth(pattern, expected):
    _, facade = make_facade({"a.ts": "", "src/b.ts": "", "src/c/d.ts": "", "README.md": ""})

    files = asyncio.run(facade.list_files(pattern))
    assert files == expected
    if "**" not in pattern:
        assert all(f.count("/") == pattern.count("/") for f in files)


@pytest.mark.parametrize("pattern", ["**/*", "**/*.js", "vendor/*", "vendor/**/*"])
def test_directory_ignore_rule_excludes_everything_beneath(pattern):
    _, facade = make_facade(
        {
            ".gitignore": "vendor/\n",
            "app.js": "",
            "vendor/lib.js": "",
            "vendor/deep/more.js": "",
        }
    )

    files = asyncio.run(facade.list_files(pattern))
    assert not any(f.startswith("vendor/") for f in files)


def test_ignore_file_is_reread_on_every_listing():
    runtime, facade = make_facade({"a.ts": "", "gen/out.ts": ""})

    async def scenario():
        before = await facade.list_files("**/*.ts")
        await facade.write_file(".gitignore", "gen/\n")
        after = await facade.list_files("**/*.ts")
        return before, after

    before, after = asyncio.run(scenario())
    assert before == ["a.ts", "gen/out.ts"]
    assert after == ["a.ts"]


def test_list_files_relative_to_base_path():
    _, facade = make_facade({"a.ts": "", "src/b.ts": "", "src/c/d.ts": ""})

    assert asyncio.run(facade.list_files("*.ts", "src")) == ["src/b.ts"]
    assert asyncio.run(facade.list_files("**/*.ts", "src")) == ["src/b.ts", "src/c/d.ts"]


# ── 搜索 ────────────────────────────────────────────────────────────


def test_grep_is_case_insensitive_by_default():
    _, facade = make_facade({"a.ts": "let x = 1;\nconst label = 'FOO';\n"})

    output = asyncio.run(facade.grep_search("foo"))
    assert output == "a.ts:2:const label = 'FOO';"


def test_grep_case_sensitive_and_whole_words():
    _, facade = make_facade({"a.ts": "Foo\nfoo\nfoobar\n"})

    assert asyncio.run(facade.grep_search("foo", case_sensitive=True)) == "a.ts:2:foo\na.ts:3:foobar"
    assert asyncio.run(facade.grep_search("foo", whole_words=True)) == "a.ts:1:Foo\na.ts:2:foo"


def test_grep_caps_results_and_appends_marker():
    _, facade = make_facade({"a.ts": "hit\n" * 5})

    lines = asyncio.run(facade.grep_search("hit", max_results=2)).split("\n")
    results = [line for line in lines if line.startswith("a.ts:")]
    assert len(results) == 2
    assert lines[-1].startswith("... more matches exist")


def test_grep_exactly_at_cap_has_no_marker():
    _, facade = make_facade({"a.ts": "hit\nhit\n"})

    output = asyncio.run(facade.grep_search("hit", max_results=2))
    assert output == "a.ts:1:hit\na.ts:2:hit"


def test_grep_no_matches_sentinel():
    _, facade = make_facade({"a.ts": "nothing here\n"})

    assert asyncio.run(facade.grep_search("Sign In")) == 'No matches found for "Sign In"'


def test_grep_respects_file_pattern_and_ignore_rules():
    _, facade = make_facade(
        {
            "docs/guide.md": "Sign In here\n",
            "src/app.ts": "Sign In button\n",
            "node_modules/pkg/index.js": "Sign In\n",
        }
    )

    assert asyncio.run(facade.grep_search("sign in")) == (
        "docs/guide.md:1:Sign In here\nsrc/app.ts:1:Sign In button"
    )
    assert asyncio.run(facade.grep_search("sign in", file_pattern="**/*.md")) == (
        "docs/guide.md:1:Sign In here"
    )


# ── 命令 ────────────────────────────────────────────────────────────


def test_run_command_returns_output_even_on_nonzero_exit():
    runtime, facade = make_facade(commands={"npm": (["lint failed\n", "1 error\n"], 1)})

    async def scenario():
        output = await facade.run_command("npm", ["run", "lint"])
        outcome = await facade.execute_command("npm", ["run", "lint"])
        return output, outcome

    output, outcome = asyncio.run(scenario())
    assert output == "lint failed\n1 error\n"
    assert outcome.exit_code == 1
    assert runtime.handles[0].spawned[0][:2] == ("npm", ["run", "lint"])


def test_start_command_merges_environment():
    runtime = MemoryRuntime(commands={"node": (["ok\n"], 0)})
    facade = WorkspaceFacade(runtime, base_env={"NODE_ENV": "test"})

    async def scenario():
        running = await facade.start_command("node", ["index.js"], env={"DEBUG": "1"})
        return await running.exit_code

    assert asyncio.run(scenario()) == 0
    assert runtime.handles[0].spawned[0][2] == {"NODE_ENV": "test", "DEBUG": "1"}
