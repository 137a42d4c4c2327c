"""
启动引导器 - 组装一个对话会话
Bootstrap - assembles one chat session.

启动顺序：
1. 加载配置
2. 创建工作区门面（本地沙箱运行时）
3. 创建协议适配器与中继传输
4. 创建编排器并共享同一个信号中枢

Startup order:
1. Load the configuration
2. Create the workspace facade (local sandbox runtime)
3. Create the protocol adapter and relay transport
4. Create the orchestrator sharing one signal hub
"""

from __future__ import annotations

import logging
from typing import Any

from sandpilot.agent.loop_state import LoopPolicy
from sandpilot.agent.runner import AgentOrchestrator
from sandpilot.config.defaults import build_default_config
from sandpilot.config.manager import CONFIG_FILE, ConfigManager
from sandpilot.intellect.registry import create_adapter
from sandpilot.intellect.transport import ProviderTransport, RelayTransport
from sandpilot.kernel.signal_hub import SignalHub
from sandpilot.workspace.facade import WorkspaceFacade
from sandpilot.workspace.local import LocalSandboxRuntime

logger = logging.getLogger(__name__)


class ChatSession:
    """
    对话会话 - 持有编排器及其依赖，负责启动和关闭
    Chat session - owns the orchestrator and its dependencies; handles
    startup and shutdown.
    """

    def __init__(
        self,
        config_path: str = CONFIG_FILE,
        workspace_root: str | None = None,
        provider: str | None = None,
    ) -> None:
        self.config = ConfigManager(defaults=build_default_config(), config_path=config_path)
        self.signal_hub = SignalHub()
        self._workspace_root = workspace_root
        self._provider = provider
        self.workspace: WorkspaceFacade | None = None
        self.transport: ProviderTransport | None = None
        self.orchestrator: AgentOrchestrator | None = None

    @property
    def provider(self) -> str:
        return self._provider or self.config.get("providers.active", "google")

    async def start(self, transport: ProviderTransport | None = None) -> AgentOrchestrator:
        """
        启动会话
        Start the session.
        """
        await self.config.load()

        workspace_conf = self.config.section("workspace")
        root = self._workspace_root or workspace_conf.get("root", ".")
        self.workspace = WorkspaceFacade(
            LocalSandboxRuntime(root),
            ignore_file=workspace_conf.get("ignore_file", ".gitignore"),
            base_env={str(k): str(v) for k, v in (workspace_conf.get("env") or {}).items()},
        )

        adapter = create_adapter(self.provider, self.config.section(f"providers.{self.provider}"))
        self.transport = transport or RelayTransport(
            self.config.get("relay.base_url", "http://127.0.0.1:3000"),
            timeout=float(self.config.get_number("relay.timeout", 120)),
        )
        self.orchestrator = AgentOrchestrator(
            adapter,
            self.transport,
            self.workspace,
            policy=LoopPolicy.from_config(self.config.section("agent")),
            hub=self.signal_hub,
        )
        logger.info("会话已就绪: 提供者=%s, 工作区=%s", self.provider, root)
        return self.orchestrator

    async def check_relay(self) -> dict[str, Any]:
        """
        检查中继上当前提供者是否可用
        Check whether the active provider is available on the relay.
        """
        if not isinstance(self.transport, RelayTransport):
            return {}
        status = await self.transport.health()
        if status and not status.get(self.provider, False):
            logger.warning("中继上的提供者 %s 未配置 API Key", self.provider)
        return status

    async def shutdown(self) -> None:
        """
        关闭会话
        Shut down the session.
        """
        if self.orchestrator is not None and self.orchestrator.is_running:
            self.orchestrator.cancel()
        await self.signal_hub.drain()
        if self.transport is not None:
            await self.transport.close()
        if self.workspace is not None:
            await self.workspace.teardown()
        logger.info("会话已关闭")
