"""
提供者传输层 - 通过同源中继发送请求
Provider transport - sends requests through the same-origin relay.

中继返回非 2xx 状态时，其 JSON 错误体为 ``{"message": ...}``。
When the relay answers with a non-2xx status its JSON error body is
``{"message": ...}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import aiohttp

from sandpilot.errors import ProviderHttpError

logger = logging.getLogger(__name__)


class ProviderTransport(ABC):
    """提供者传输接口 / Provider transport interface."""

    @abstractmethod
    async def send(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        发送一次请求并返回 JSON 响应
        Send one request and return the JSON reply.
        """
        ...

    async def close(self) -> None:
        """释放资源 / Release resources."""
        pass


class RelayTransport(ProviderTransport):
    """
    中继传输 - 基于 aiohttp 的 HTTP 客户端
    Relay transport - aiohttp-based HTTP client.

    不做重试；取消调用方任务即可中止进行中的请求。
    No retries; cancelling the calling task aborts the in-flight request.
    """

    def __init__(self, base_url: str, timeout: float = 120.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """确保会话已创建 / Ensure the session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
        return self._session

    async def send(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        session = self._ensure_session()
        url = f"{self._base_url}{endpoint}"
        logger.debug("发送请求到 %s (%d 条消息)", url, _message_count(payload))

        try:
            async with session.post(url, json=payload) as resp:
                body = await resp.text()
                if resp.status >= 300:
                    message = _error_message(body) or resp.reason or "Provider request failed"
                    logger.error("中继返回错误 HTTP %d: %s", resp.status, message)
                    raise ProviderHttpError(message, status=resp.status)
        except aiohttp.ClientError as exc:
            logger.error("中继请求失败: %s", exc)
            raise ProviderHttpError(f"Relay request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise ProviderHttpError(
                f"Relay request timed out after {self._timeout:.0f}s"
            ) from exc

        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ProviderHttpError(f"Relay returned invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ProviderHttpError("Relay returned a non-object JSON reply")
        return parsed

    async def health(self) -> dict[str, bool]:
        """
        查询中继上可用的提供者
        Ask the relay which providers are available.
        """
        session = self._ensure_session()
        try:
            async with session.get(f"{self._base_url}/api/health") as resp:
                if resp.status != 200:
                    return {}
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError):
            logger.warning("无法获取中继健康状态")
            return {}
        return {str(k): bool(v) for k, v in data.items()} if isinstance(data, dict) else {}

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


def _error_message(body: str) -> str | None:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body.strip()[:500] or None
    if not isinstance(data, dict):
        return None
    message = data.get("message")
    if isinstance(message, str) and message:
        return message
    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    return None


def _message_count(payload: dict[str, Any]) -> int:
    messages = payload.get("messages", payload.get("contents", []))
    return len(messages) if isinstance(messages, list) else 0
