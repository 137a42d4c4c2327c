"""
配置模块 - 管理应用配置
Config module - manages application configuration.
"""

from sandpilot.config.defaults import build_default_config
from sandpilot.config.manager import ConfigManager

__all__ = ["ConfigManager", "build_default_config"]
