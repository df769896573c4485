"""LLM subsystem -- providers, stream decoding, and tool-call assembly."""

from parley.llm.factory import ProviderFactory
from parley.llm.providers.base import Provider
from parley.llm.token_counter import TokenCounter
from parley.llm.tool_call_assembler import AssembledCall, ToolCallAssembler
from parley.llm.types import (
    ChatResponse,
    Completed,
    Failed,
    Message,
    ProviderConfig,
    StreamEvent,
    TextDelta,
    ToolCallArguments,
    ToolCallStart,
    Usage,
)
from parley.llm.window import recent_window

__all__ = [
    "AssembledCall",
    "ChatResponse",
    "Completed",
    "Failed",
    "Message",
    "Provider",
    "ProviderConfig",
    "ProviderFactory",
    "StreamEvent",
    "TextDelta",
    "TokenCounter",
    "ToolCallArguments",
    "ToolCallAssembler",
    "ToolCallStart",
    "Usage",
    "recent_window",
]
