from parley.tools.base import (
    ToolDeclaration,
    ToolHandler,
    ToolInvocation,
    ToolInvocationResult,
)
from parley.tools.registry import ToolRegistry

__all__ = [
    "ToolDeclaration",
    "ToolHandler",
    "ToolInvocation",
    "ToolInvocationResult",
    "ToolRegistry",
]
