"""Built-in tools."""

from parley.tools.builtin import clock
from parley.tools.registry import ToolRegistry


def register_builtin_tools(registry: ToolRegistry) -> None:
    clock.register(registry)


__all__ = ["register_builtin_tools"]
