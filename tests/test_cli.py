import json
import logging

import pytest
from click.testing import CliRunner

from fakes import ScriptedTransport, gemini_call_reply, gemini_text_reply
from sandpilot.cli.main import cli

CONFIG = "cfg/sandpilot.json"


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger("sandpilot")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def fake_relay(replies):
    class FakeRelay(ScriptedTransport):
        instances = []

        def __init__(self, base_url, timeout=120.0):
            super().__init__(list(replies))
            self.base_url = base_url
            FakeRelay.instances.append(self)

        async def health(self):
            return {"anthropic": False, "google": True}

    return FakeRelay


def test_version():
    result = CliRunner().invoke(cli, ["version"])

    assert result.exit_code == 0
    assert result.output.strip() == "SandPilot v1.0.0"


def test_init_then_conf_show():
    runner = CliRunner()
    with runner.isolated_filesystem():
        missing = runner.invoke(cli, ["--config", CONFIG, "conf", "show"])
        assert "init" in missing.output

        created = runner.invoke(cli, ["--config", CONFIG, "init"])
        assert created.exit_code == 0
        with open(CONFIG, encoding="utf-8") as f:
            assert json.load(f)["relay"]["port"] == 3000

        port = runner.invoke(cli, ["--config", CONFIG, "conf", "show", "relay.port"])
        assert port.output.strip() == "3000"

        unknown = runner.invoke(cli, ["--config", CONFIG, "conf", "show", "relay.nope"])
        assert "relay.nope" in unknown.output


def test_init_asks_before_overwriting():
    runner = CliRunner()
    with runner.isolated_filesystem():
        runner.invoke(cli, ["--config", CONFIG, "init"])
        with open(CONFIG, "w", encoding="utf-8") as f:
            json.dump({"custom": True}, f)

        result = runner.invoke(cli, ["--config", CONFIG, "init"], input="n\n")

        assert result.exit_code == 0
        with open(CONFIG, encoding="utf-8") as f:
            assert json.load(f) == {"custom": True}


def test_chat_single_message_runs_tool_loop(monkeypatch):
    relay = fake_relay(
        [
            gemini_call_reply(("read_file", {"path": "a.ts"}), text="Checking."),
            gemini_text_reply("a.ts has 1 line."),
        ]
    )
    monkeypatch.setattr("sandpilot.kernel.bootstrap.RelayTransport", relay)
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open("a.ts", "w", encoding="utf-8") as f:
            f.write("export {};")

        result = runner.invoke(cli, ["--config", CONFIG, "chat", "-m", "how long is a.ts?"])

    assert result.exit_code == 0, result.output
    assert "assistant> Checking." in result.output
    assert "Read a.ts (1 lines)" in result.output
    assert "assistant> a.ts has 1 line." in result.output
    transport = relay.instances[0]
    assert transport.base_url == "http://127.0.0.1:3000"
    assert transport.requests[0][0] == "/api/google/generate"
    assert transport.closed


def test_chat_repl_exits_on_command(monkeypatch):
    relay = fake_relay([gemini_text_reply("Hello there.")])
    monkeypatch.setattr("sandpilot.kernel.bootstrap.RelayTransport", relay)
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["--config", CONFIG, "chat"], input="hello\n\n/exit\n")

    assert result.exit_code == 0, result.output
    assert "assistant> Hello there." in result.output
    assert len(relay.instances[0].requests) == 1
