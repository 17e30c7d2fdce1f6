"""
Tool-invocation front end.
"""

from .tools import SendRequestsTool, ToolParameterError, ToolParameters

__all__ = ['SendRequestsTool', 'ToolParameterError', 'ToolParameters']
