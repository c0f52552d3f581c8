# Services package
"""Tool-facing services for the smart weather query system."""

from .tool_handlers import ToolHandlerService

__all__ = ["ToolHandlerService"]
