"""Stream decoders -- one per wire format."""

from parley.llm.decoders.anthropic import AnthropicEventDecoder
from parley.llm.decoders.base import LineDecoder, StreamDecoder
from parley.llm.decoders.ndjson import NDJSONDecoder
from parley.llm.decoders.sse import SSEDecoder

__all__ = [
    "AnthropicEventDecoder",
    "LineDecoder",
    "NDJSONDecoder",
    "SSEDecoder",
    "StreamDecoder",
]
