"""
Web 应用 - 基于 Quart 的同源中继服务
Web application - Quart-based same-origin relay service.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from quart import Quart

from sandpilot.intellect.providers import RelayProvider
from sandpilot.web.routes import register_isolation_headers, register_relay_routes

logger = logging.getLogger(__name__)


def create_app(providers: Mapping[str, RelayProvider]) -> Quart:
    """
    创建中继应用
    Create the relay application.
    """
    app = Quart(__name__)
    register_isolation_headers(app)
    register_relay_routes(app, providers)

    @app.after_serving
    async def close_providers() -> None:
        for provider in providers.values():
            await provider.close()

    return app


class RelayApplication:
    """
    中继应用 - 转发模型请求并提供跨源隔离头
    Relay application - forwards model requests and serves the isolation
    headers.
    """

    def __init__(
        self,
        providers: Mapping[str, RelayProvider],
        host: str = "127.0.0.1",
        port: int = 3000,
    ) -> None:
        self._providers = providers
        self._host = host
        self._port = port
        self._app = create_app(providers)

    @property
    def app(self) -> Quart:
        return self._app

    async def run(self) -> None:
        """启动服务器 / Start server."""
        from hypercorn.asyncio import serve
        from hypercorn.config import Config

        config = Config()
        config.bind = [f"{self._host}:{self._port}"]
        config.accesslog = None

        available = [name for name, p in self._providers.items() if p.available]
        logger.info("中继服务运行在 http://%s:%d", self._host, self._port)
        logger.info("可用提供者: %s", ", ".join(available) or "无")

        try:
            await serve(self._app, config)
        except Exception:
            logger.exception("中继服务出错")
            raise
