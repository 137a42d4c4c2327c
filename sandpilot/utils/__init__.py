"""
工具模块
Utilities module.
"""

from sandpilot.utils.logging import setup_logging

__all__ = ["setup_logging"]
