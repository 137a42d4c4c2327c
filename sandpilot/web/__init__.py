"""
Web 模块 - 同源中继服务
Web module - same-origin relay service.
"""

from sandpilot.web.app import RelayApplication, create_app

__all__ = ["RelayApplication", "create_app"]
