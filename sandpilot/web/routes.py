"""
Web 路由模块 - 中继 API 路由注册
Web routes module - relay API route registrations.

中继把浏览器端的请求体原样转发给厂商 SDK，错误统一返回 ``{"message": ...}``。
The relay forwards request bodies unchanged to the vendor SDKs; every error
is returned as ``{"message": ...}``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from quart import Quart, jsonify, request

from sandpilot.intellect.providers import ProviderUnavailableError, RelayProvider

logger = logging.getLogger(__name__)

ISOLATION_HEADERS = {
    "Cross-Origin-Embedder-Policy": "require-corp",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


def _error(message: str, status: int) -> Any:
    return jsonify({"message": message}), status


def _upstream_status(exc: Exception) -> int:
    # anthropic 使用 status_code，google-genai 使用 code
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return 500


async def _forward(provider: RelayProvider | None, name: str) -> Any:
    if provider is None:
        return _error(f"Provider '{name}' is not configured", 404)

    body = await request.get_json(silent=True)
    if not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)

    try:
        reply = await provider.forward(body)
    except ProviderUnavailableError as exc:
        logger.warning("提供者 %s 不可用: %s", name, exc)
        return _error(str(exc), 503)
    except Exception as exc:
        status = _upstream_status(exc)
        logger.error("转发到 %s 失败 (HTTP %d): %s", name, status, exc)
        message = getattr(exc, "message", None) or str(exc) or "Upstream request failed"
        return _error(str(message), status)
    return jsonify(reply)


def register_isolation_headers(app: Quart) -> None:
    """
    为每个响应添加跨源隔离头
    Add the cross-origin isolation headers to every response.
    """

    @app.after_request
    async def add_isolation_headers(response: Any) -> Any:
        for header, value in ISOLATION_HEADERS.items():
            response.headers[header] = value
        return response


def register_relay_routes(app: Quart, providers: Mapping[str, RelayProvider]) -> None:
    """注册中继路由 / Register relay routes."""

    @app.route("/api/health", methods=["GET"])
    async def health() -> Any:
        return jsonify({name: provider.available for name, provider in providers.items()})

    @app.route("/api/anthropic/messages", methods=["POST"])
    async def anthropic_messages() -> Any:
        return await _forward(providers.get("anthropic"), "anthropic")

    @app.route("/api/google/generate", methods=["POST"])
    async def google_generate() -> Any:
        return await _forward(providers.get("google"), "google")
