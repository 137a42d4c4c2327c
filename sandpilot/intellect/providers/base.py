"""
中继提供者基类 - 在中继服务端把请求转发给厂商 SDK
Relay provider base - forwards requests to a vendor SDK on the relay side.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sandpilot.errors import ProviderError


@dataclass
class ProviderInfo:
    """
    提供者信息描述
    Provider information descriptor.
    """

    # 提供者唯一标识
    provider_id: str = ""
    # 显示名称
    display_name: str = ""
    # 当前使用的模型名
    model_name: str = ""
    # 附加元数据
    extra: dict[str, Any] = field(default_factory=dict)


class RelayProvider(ABC):
    """
    中继提供者 - 将线协议请求体原样转发
    Relay provider - forwards a wire-protocol request body unchanged.
    """

    # 读取 API Key 的环境变量（按顺序）
    env_keys: tuple[str, ...] = ()

    def __init__(self, config: dict[str, Any]) -> None:
        self._config = config
        self._api_key = config.get("api_key") or self._key_from_env()
        self._info = ProviderInfo()

    def _key_from_env(self) -> str:
        for name in self.env_keys:
            value = os.getenv(name)
            if value:
                return value
        return ""

    @property
    def info(self) -> ProviderInfo:
        return self._info

    @property
    def available(self) -> bool:
        """是否配置了 API Key / Whether an API key is configured."""
        return bool(self._api_key)

    @abstractmethod
    async def forward(self, body: dict[str, Any]) -> dict[str, Any]:
        """
        转发请求体并返回 JSON 响应
        Forward the request body and return the JSON reply.
        """
        ...

    async def close(self) -> None:
        """释放资源 / Release resources."""
        pass


class ProviderUnavailableError(ProviderError):
    """提供者缺少 API Key / The provider has no API key."""
