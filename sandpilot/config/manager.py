"""
配置管理器 - 读取会话配置并补齐默认值
Config manager - loads the session configuration and fills in defaults.

配置文件为 JSON。缺失的键由默认值补齐，补齐后的结果写回文件，
用户可以在此基础上修改。
The config file is JSON. Missing keys are filled from the defaults and the
merged result is written back so users can edit a complete file.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any

from sandpilot.config.defaults import PROVIDER_NAMES

logger = logging.getLogger(__name__)

CONFIG_FILE = os.path.join("data", "config", "sandpilot_config.json")


def _merge_defaults(config: dict[str, Any], defaults: dict[str, Any]) -> None:
    """递归合并默认值（不覆盖已有值）/ Merge defaults without overwriting."""
    for key, default_value in defaults.items():
        if key not in config:
            config[key] = default_value
        elif isinstance(default_value, dict) and isinstance(config[key], dict):
            _merge_defaults(config[key], default_value)


class ConfigManager:
    """
    会话配置

    嵌套键用点号访问，如 ``relay.base_url``。
    Nested keys are addressed with dots, e.g. ``relay.base_url``.
    """

    def __init__(
        self,
        defaults: dict[str, Any] | None = None,
        config_path: str = CONFIG_FILE,
    ) -> None:
        self._defaults = defaults or {}
        self._config: dict[str, Any] = {}
        self._config_path = config_path

    async def load(self) -> None:
        """
        加载配置文件，补齐默认值并写回
        Load the config file, fill in defaults and write it back.
        """
        self._config = self._read()
        _merge_defaults(self._config, copy.deepcopy(self._defaults))
        self._check_active_provider()
        self._write()

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self._config_path):
            logger.info("未找到配置文件，将创建默认配置: %s", self._config_path)
            return {}
        try:
            with open(self._config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            logger.warning("加载配置失败，使用默认值")
            return {}
        if not isinstance(data, dict):
            logger.warning("配置文件顶层不是对象，使用默认值")
            return {}
        logger.info("配置已从 %s 加载", self._config_path)
        return data

    def _write(self) -> None:
        try:
            os.makedirs(os.path.dirname(self._config_path) or ".", exist_ok=True)
            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, ensure_ascii=False, indent=2)
        except OSError:
            logger.exception("保存配置失败")

    def _check_active_provider(self) -> None:
        active = self.get("providers.active")
        if active in PROVIDER_NAMES:
            return
        fallback = self._defaults.get("providers", {}).get("active", PROVIDER_NAMES[-1])
        logger.warning("未知的提供者 %r，改用 %s", active, fallback)
        providers = self._config.get("providers")
        if not isinstance(providers, dict):
            providers = self._config["providers"] = {}
        providers["active"] = fallback

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值（支持嵌套键）
        Get a config value (supports nested keys).
        """
        current: Any = self._config
        for k in key.split("."):
            if not isinstance(current, dict):
                return default
            current = current.get(k)
            if current is None:
                return default
        return current

    def get_number(self, key: str, default: float) -> float:
        """读取数值配置，非法时回退到默认值 / Numeric value, or the default when invalid."""
        value = self.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning("配置项 %s 不是数字: %r，使用 %s", key, value, default)
            return default
        return value

    def section(self, key: str) -> dict[str, Any]:
        """获取一个配置节（不存在时为空字典）/ Get a config section (empty when absent)."""
        value = self.get(key)
        return dict(value) if isinstance(value, dict) else {}
