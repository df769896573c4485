"""Core types for the LLM subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Literal, Union

from parley.errors import ConfigurationError

Role = Literal["user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A single message in a conversation."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_wire(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ProviderConfig:
    """
    Fully resolved configuration for one provider adapter.

    Instances are immutable: a changed configuration means a new adapter,
    never a mutated one.  Per-call tweaks go through :meth:`merged`.
    """

    provider: str
    api_key: str = ""
    model: str = ""
    base_url: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None

    @property
    def cache_key(self) -> tuple[str, str, str | None]:
        """Identity used by the factory to decide whether to reuse an adapter."""
        return (self.provider, self.api_key, self.base_url)

    def merged(self, override: dict[str, Any] | None) -> ProviderConfig:
        """Return a copy with *override* applied (``None`` values ignored)."""
        if not override:
            return self
        valid = {f.name for f in fields(self)}
        unknown = set(override) - valid
        if unknown:
            raise ConfigurationError(
                f"Unknown config override field(s): {', '.join(sorted(unknown))}"
            )
        changes = {k: v for k, v in override.items() if v is not None}
        return replace(self, **changes)

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks.
        key = f"{self.api_key[:6]}..." if self.api_key else "(none)"
        return (
            f"ProviderConfig(provider={self.provider!r}, model={self.model!r}, "
            f"base_url={self.base_url!r}, api_key={key!r})"
        )


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ChatResponse:
    """Result of a single-shot (non-streaming) completion."""

    content: str
    usage: Usage | None = None


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------
#
# The uniform output of every stream decoder, whatever the wire format.  The
# set is closed: orchestration code matches on exactly these five classes.


@dataclass(frozen=True)
class TextDelta:
    """An incremental (never cumulative) slice of generated text."""

    text: str


@dataclass(frozen=True)
class ToolCallStart:
    name: str
    call_id: str


@dataclass(frozen=True)
class ToolCallArguments:
    """
    A fragment of a tool call's JSON argument string.

    ``final`` marks the fragment that closes the call's argument set; it may
    carry an empty ``partial``.
    """

    call_id: str
    partial: str
    final: bool = False


@dataclass(frozen=True)
class Completed:
    usage: Usage | None = None


@dataclass(frozen=True)
class Failed:
    reason: str
    error: Exception | None = field(default=None, compare=False)


StreamEvent = Union[TextDelta, ToolCallStart, ToolCallArguments, Completed, Failed]

TERMINAL_EVENTS = (Completed, Failed)


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, TERMINAL_EVENTS)
