"""
内核模块 - 事件分发
Kernel module - event dispatching.
"""

from sandpilot.kernel.signal_hub import Signal, SignalHub, SignalKind, SignalPriority

__all__ = ["Signal", "SignalHub", "SignalKind", "SignalPriority"]
