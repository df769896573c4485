from __future__ import annotations

import logging
from importlib.metadata import entry_points

from parley.errors import InvalidToolArguments, ToolExecutionFailed, UnknownTool
from parley.tools.base import (
    ToolDeclaration,
    ToolHandler,
    ToolInvocation,
    ToolInvocationResult,
)
from parley.tools.validation import ToolValidator

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Name -> (declaration, handler) mapping shared by every provider.

    Written at startup when tool modules register themselves; read-only
    during normal operation.
    """

    def __init__(self):
        self._tools: dict[str, tuple[ToolDeclaration, ToolHandler]] = {}

    def register(self, declaration: ToolDeclaration, handler: ToolHandler) -> None:
        """Add a tool, replacing any existing tool of the same name."""
        if declaration.name in self._tools:
            logger.info("Replacing registered tool: %s", declaration.name)
        self._tools[declaration.name] = (declaration, handler)

    def get(self, name: str) -> ToolDeclaration | None:
        entry = self._tools.get(name)
        return entry[0] if entry else None

    def has(self, name: str) -> bool:
        return name in self._tools

    def list(self) -> list[ToolDeclaration]:
        return sorted((d for d, _ in self._tools.values()), key=lambda d: d.name)

    def __len__(self) -> int:
        return len(self._tools)

    # ------------------------------------------------------------------
    # Schema dialects
    # ------------------------------------------------------------------

    def to_openai_schema(self) -> list[dict]:
        return [d.to_openai_schema() for d in self.list()]

    def to_anthropic_schema(self) -> list[dict]:
        return [d.to_anthropic_schema() for d in self.list()]

    def to_ollama_schema(self) -> list[dict]:
        return [d.to_ollama_schema() for d in self.list()]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, invocation: ToolInvocation) -> ToolInvocationResult:
        entry = self._tools.get(invocation.name)
        if entry is None:
            raise UnknownTool(invocation.name)
        declaration, handler = entry

        valid, error_msg = ToolValidator.validate(declaration, invocation.arguments)
        if not valid:
            raise InvalidToolArguments(invocation.name, f"invalid arguments: {error_msg}")

        logger.info("Executing tool %s (call %s)", invocation.name, invocation.id)
        try:
            value = await handler(invocation.arguments)
        except Exception as exc:
            raise ToolExecutionFailed(invocation.name, exc) from exc
        return ToolInvocationResult.from_value(value)

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    def load_plugins(
        self,
        *,
        enabled: bool,
        group: str = "parley.tools",
        allow_distributions: set[str] | None = None,
        allow_tools: set[str] | None = None,
    ) -> int:
        """Load tools from entry points.

        Each entry point resolves to a ``register(registry)`` callable, the
        same hook built-in tool modules expose.
        """
        if not enabled:
            return 0
        loaded = 0
        for ep in entry_points(group=group):
            dist = getattr(ep, "dist", None)
            dist_name = getattr(dist, "name", None)
            if allow_distributions and dist_name and dist_name not in allow_distributions:
                continue
            if allow_tools and ep.name not in allow_tools:
                continue
            register = ep.load()
            register(self)
            loaded += 1
        return loaded
