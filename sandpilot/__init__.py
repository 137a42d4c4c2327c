"""
SandPilot - 沙箱工作区内的编码助手
SandPilot - a coding assistant that works inside a sandboxed workspace.

由智能体编排循环驱动，通过工具调用读写沙箱文件并执行命令。
Driven by an agent orchestration loop that reads and writes sandbox files
and runs commands through tool calls.
"""

__app_name__ = "SandPilot"
__version__ = "1.0.0"
