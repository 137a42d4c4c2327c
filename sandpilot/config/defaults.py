"""
默认配置 - 所有默认配置值
Default configuration - all default configuration values.
"""

from __future__ import annotations

from typing import Any

from sandpilot import __version__

VERSION = __version__

PROVIDER_NAMES = ("anthropic", "google")


def build_default_config() -> dict[str, Any]:
    """
    构建默认配置
    Build the default configuration.
    """
    return {
        # 同源中继配置（客户端地址 + 服务端监听）
        "relay": {
            "base_url": "http://127.0.0.1:3000",
            "host": "127.0.0.1",
            "port": 3000,
            "timeout": 120,
        },
        # 智能层（LLM）配置
        "providers": {
            "active": "google",
            "anthropic": {
                "api_key": "",
                "model": "claude-3-opus-20240229",
                "max_tokens": 4096,
            },
            "google": {
                "api_key": "",
                "model": "gemini-2.0-flash",
            },
        },
        # 智能体循环配置
        "agent": {
            "max_round_trips": 10,
            "repetition_window": 6,
            "max_repeats": 2,
            "max_same_tool": 4,
        },
        # 工作区配置
        "workspace": {
            "root": ".",
            "ignore_file": ".gitignore",
            "env": {},
        },
        # 日志配置
        "logging": {
            "level": "INFO",
            "file": "data/logs/sandpilot.log",
        },
    }
