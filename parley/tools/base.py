"""
Tool declarations, invocations and results.

A tool is a :class:`ToolDeclaration` (what the model sees) paired with an
async handler (what runs).  Declarations know how to render themselves in
each provider's schema dialect; they know nothing about any backend beyond
that.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("properties", {})
    s.setdefault("additionalProperties", False)
    return s


@dataclass(frozen=True)
class ToolDeclaration:
    """
    Declarative description of a tool.

    ``parameters`` is a JSON Schema object; its ``required`` list names the
    mandatory subset of ``properties``.
    """

    name: str
    description: str
    parameters: dict = field(default_factory=dict)

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": normalize_schema(self.parameters),
            },
        }

    def to_anthropic_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": normalize_schema(self.parameters),
        }

    def to_ollama_schema(self) -> dict:
        # Ollama accepts the OpenAI function shape verbatim.
        return self.to_openai_schema()


@dataclass
class ToolInvocation:
    """A request, produced by a model's stream, to run a named tool."""

    id: str
    name: str
    arguments: dict = field(default_factory=dict)


@dataclass
class ToolInvocationResult:
    """
    Outcome of one tool invocation.

    *payload* is whatever structured data the handler produced; *summary* is
    an optional pre-rendered human-readable string.  A handler may report a
    soft failure through *error* instead of raising.
    """

    payload: Any = None
    summary: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def render(self) -> str:
        """Text spliced into the visible response stream."""
        if self.error:
            return f"Tool call failed: {self.error}"
        if self.summary:
            return self.summary
        if isinstance(self.payload, str) and self.payload:
            return self.payload
        if isinstance(self.payload, dict) and isinstance(self.payload.get("message"), str):
            return self.payload["message"]
        return "Tool call completed."

    @classmethod
    def from_value(cls, value: Any) -> ToolInvocationResult:
        """
        Wrap a plain handler return value.

        Dicts follow the ``{"summary": ..., "error": ...}`` convention: those
        keys are lifted onto the result, the dict itself becomes the payload.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            summary = value.get("summary")
            error = value.get("error")
            return cls(
                payload=value,
                summary=summary if isinstance(summary, str) else None,
                error=str(error) if error else None,
            )
        return cls(payload=value)


ToolHandler = Callable[[dict], Awaitable[Any]]
