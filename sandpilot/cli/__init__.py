"""
命令行模块
Command-line module.
"""

from sandpilot.cli.main import cli, run_cli

__all__ = ["cli", "run_cli"]
