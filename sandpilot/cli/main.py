"""
CLI 主入口 - 使用 Click 框架
CLI main entry - using Click framework.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import sys
from typing import Any

import click

from sandpilot.config.manager import CONFIG_FILE

logger = logging.getLogger("sandpilot")

EXIT_COMMANDS = {"/exit", "/quit"}


@click.group()
@click.option(
    "--config",
    "config_path",
    default=CONFIG_FILE,
    show_default=True,
    help="配置文件路径 / Config file path",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """SandPilot - 沙箱工作区内的编码助手"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _load_config(config_path: str) -> dict[str, Any] | None:
    if not os.path.exists(config_path):
        return None
    with open(config_path, encoding="utf-8") as f:
        return json.load(f)


def _setup_logging_from(config_path: str, verbose: bool) -> None:
    from sandpilot.utils.logging import setup_logging

    config = _load_config(config_path) or {}
    log_conf = config.get("logging") or {}
    level = "DEBUG" if verbose else log_conf.get("level", "INFO")
    setup_logging(level, log_conf.get("file"))


# ── chat ────────────────────────────────────────────────────────────


def _echo_turn(signal_obj: Any) -> None:
    turn = signal_obj.payload
    if turn.role != "assistant" or not turn.text:
        return
    click.echo(click.style("assistant> ", fg="cyan", bold=True) + turn.text)


def _echo_status(signal_obj: Any) -> None:
    click.echo(click.style(f"  · {signal_obj.payload}", fg="yellow"))


async def _submit(orchestrator: Any, text: str) -> Any:
    """
    运行一次提交；运行期间 Ctrl-C 会停止生成而不是退出
    Run one submission; Ctrl-C stops the generation instead of exiting.
    """
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        installed = False

    try:
        result = await orchestrator.submit(text)
        await orchestrator.hub.drain()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
    return result


@cli.command()
@click.option("--workspace", "workspace_root", default=None, help="工作区根目录 / Workspace root")
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "google"]),
    default=None,
    help="使用的提供者 / Provider to use",
)
@click.option("-m", "--message", default=None, help="只发送一条消息后退出 / Send one message and exit")
@click.option("-v", "--verbose", is_flag=True, help="调试日志 / Debug logging")
@click.pass_context
def chat(
    ctx: click.Context,
    workspace_root: str | None,
    provider: str | None,
    message: str | None,
    verbose: bool,
) -> None:
    """与编码助手对话 / Chat with the coding assistant."""
    from sandpilot.kernel.bootstrap import ChatSession
    from sandpilot.kernel.signal_hub import SignalKind

    config_path = ctx.obj["config_path"]
    _setup_logging_from(config_path, verbose)

    session = ChatSession(config_path, workspace_root=workspace_root, provider=provider)
    session.signal_hub.connect(SignalKind.TURN_APPENDED, _echo_turn)
    session.signal_hub.connect(SignalKind.TOOL_STATUS, _echo_status)

    loop = asyncio.new_event_loop()
    try:
        orchestrator = loop.run_until_complete(session.start())
        loop.run_until_complete(session.check_relay())

        if message is not None:
            loop.run_until_complete(_submit(orchestrator, message))
            return

        click.echo(f"SandPilot ({session.provider}) - 输入 /exit 退出，生成中按 Ctrl-C 停止")
        while True:
            try:
                text = click.prompt("you", prompt_suffix="> ", default="", show_default=False)
            except click.Abort:
                click.echo()
                break
            text = text.strip()
            if not text:
                continue
            if text in EXIT_COMMANDS:
                break
            loop.run_until_complete(_submit(orchestrator, text))
    except Exception:
        logger.exception("致命错误")
        sys.exit(1)
    finally:
        loop.run_until_complete(session.shutdown())
        loop.close()


# ── serve ───────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="中继监听地址 / Relay listen address")
@click.option("--port", default=None, type=int, help="中继端口 / Relay port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """启动同源中继服务 / Start the same-origin relay server."""
    from sandpilot.config.defaults import build_default_config
    from sandpilot.config.manager import ConfigManager
    from sandpilot.intellect.registry import create_relay_providers
    from sandpilot.web.app import RelayApplication

    config_path = ctx.obj["config_path"]
    _setup_logging_from(config_path, False)
    logger.info("正在启动 SandPilot 中继...")

    async def main() -> None:
        config_mgr = ConfigManager(defaults=build_default_config(), config_path=config_path)
        await config_mgr.load()
        providers = create_relay_providers(config_mgr.section("providers"))
        app = RelayApplication(
            providers,
            host=host or config_mgr.get("relay.host", "127.0.0.1"),
            port=port or int(config_mgr.get_number("relay.port", 3000)),
        )
        await app.run()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("收到键盘中断信号")
    except Exception:
        logger.exception("致命错误")
        sys.exit(1)


# ── init / version / conf ───────────────────────────────────────────


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """初始化配置 / Initialize configuration."""
    from sandpilot.config.defaults import build_default_config

    config_path = ctx.obj["config_path"]
    os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)

    if os.path.exists(config_path):
        click.echo(f"配置文件已存在: {config_path}")
        if not click.confirm("是否覆盖?"):
            return

    config = build_default_config()
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config, f, ensure_ascii=False, indent=2)

    click.echo(f"配置文件已创建: {config_path}")


@cli.command()
def version() -> None:
    """显示版本信息 / Show version info."""
    from sandpilot import __app_name__, __version__

    click.echo(f"{__app_name__} v{__version__}")


@cli.group()
def conf() -> None:
    """配置管理 / Configuration management."""
    pass


@conf.command("show")
@click.argument("key", required=False)
@click.pass_context
def conf_show(ctx: click.Context, key: str | None) -> None:
    """显示配置 / Show configuration."""
    config = _load_config(ctx.obj["config_path"])
    if config is None:
        click.echo("配置文件不存在，请先运行 init")
        return

    current: Any = config
    if key:
        for k in key.split("."):
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                click.echo(f"键 '{key}' 不存在")
                return

    click.echo(json.dumps(current, ensure_ascii=False, indent=2))


def run_cli() -> int:
    """执行 CLI 并返回进程退出码 / Run the CLI and return the exit code."""
    try:
        cli(standalone_mode=False, obj={})
    except click.exceptions.Exit as exc:
        return exc.exit_code
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return 0


if __name__ == "__main__":
    cli(obj={})
