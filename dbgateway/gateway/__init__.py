"""Tool-call surface over the connection registry."""

from dbgateway.gateway.dispatcher import TOOLS, ToolDispatcher, ToolResult, ToolSpec

__all__ = [
    "TOOLS",
    "ToolDispatcher",
    "ToolResult",
    "ToolSpec",
]
