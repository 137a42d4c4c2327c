#!/usr/bin/env python3
"""
SandPilot - 沙箱化编码助手
应用主入口。
"""

import sys
from pathlib import Path

# 确保项目根目录已加入 Python 路径
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))


def check_environment() -> None:
    """校验运行环境要求。"""
    if sys.version_info < (3, 10):
        print("Error: Python 3.10 or higher is required.")
        sys.exit(1)


def display_banner() -> None:
    """显示应用启动横幅。"""
    from sandpilot import __app_name__, __version__

    print(f"  {__app_name__} v{__version__} | Sandboxed Coding Assistant")
    print("  ─" * 32)


if __name__ == "__main__":
    check_environment()
    display_banner()

    from sandpilot.cli.main import run_cli

    sys.exit(run_cli())
