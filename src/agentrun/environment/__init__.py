"""
Tool abstractions available to agents driven by the execution loop.
"""

from .tools import EXCEPTION_TOOL_NAME, BaseTool, ExceptionTool, StructuredTool, Tool

__all__ = [
    "BaseTool",
    "Tool",
    "StructuredTool",
    "ExceptionTool",
    "EXCEPTION_TOOL_NAME",
]
