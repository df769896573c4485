"""
Re-tagging decoder for the Anthropic SDK's typed stream events.

No byte buffering is needed here -- the SDK already yields whole events.  The
decoder maps its taxonomy onto the uniform stream events:

==========================================  ================================
SDK event                                   Stream event
==========================================  ================================
``content_block_start`` (``tool_use``)      ``ToolCallStart``
``content_block_delta`` (``text_delta``)    ``TextDelta``
``content_block_delta`` (``input_json``)    ``ToolCallArguments``
``content_block_stop`` (tool block)         final ``ToolCallArguments``
``message_stop``                            ``Completed``
``error``                                   ``Failed``
==========================================  ================================

Helper events emitted by ``messages.stream()`` (``text``, ``input_json``,
...) duplicate the raw deltas and are ignored.
"""

from __future__ import annotations

import logging
from typing import Any

from parley.llm.decoders.base import StreamDecoder
from parley.llm.types import (
    Failed,
    StreamEvent,
    TextDelta,
    ToolCallArguments,
    ToolCallStart,
    Usage,
)

logger = logging.getLogger(__name__)


class AnthropicEventDecoder(StreamDecoder):
    def __init__(self) -> None:
        super().__init__()
        self._open_tools: dict[int, str] = {}
        self._input_tokens = 0
        self._output_tokens = 0

    def feed(self, event: Any) -> list[StreamEvent]:
        out: list[StreamEvent] = []
        if self._terminated:
            return out

        event_type = getattr(event, "type", None)

        if event_type == "message_start":
            usage = getattr(getattr(event, "message", None), "usage", None)
            self._input_tokens = getattr(usage, "input_tokens", 0) or 0

        elif event_type == "content_block_start":
            block = getattr(event, "content_block", None)
            block_type = getattr(block, "type", None)
            if block_type == "tool_use":
                index = getattr(event, "index", len(self._open_tools))
                call_id = getattr(block, "id", None) or f"toolu_{index}"
                self._open_tools[index] = call_id
                self._emit(out, ToolCallStart(getattr(block, "name", ""), call_id))
            elif block_type == "text" and getattr(block, "text", ""):
                self._emit(out, TextDelta(block.text))

        elif event_type == "content_block_delta":
            delta = getattr(event, "delta", None)
            delta_type = getattr(delta, "type", None)
            if delta_type == "text_delta":
                text = getattr(delta, "text", "")
                if text:
                    self._emit(out, TextDelta(text))
            elif delta_type == "input_json_delta":
                index = getattr(event, "index", None)
                call_id = self._open_tools.get(index)
                if call_id is None:
                    logger.warning("input_json_delta for unknown content block %s", index)
                else:
                    partial = getattr(delta, "partial_json", "") or ""
                    if partial:
                        self._emit(out, ToolCallArguments(call_id, partial))

        elif event_type == "content_block_stop":
            call_id = self._open_tools.pop(getattr(event, "index", None), None)
            if call_id is not None:
                self._emit(out, ToolCallArguments(call_id, "", final=True))

        elif event_type == "message_delta":
            usage = getattr(event, "usage", None)
            self._output_tokens = getattr(usage, "output_tokens", 0) or self._output_tokens

        elif event_type == "message_stop":
            self._close_open_tools(out)
            self._usage = Usage(self._input_tokens, self._output_tokens)
            self._complete(out)

        elif event_type == "error":
            error = getattr(event, "error", None)
            message = getattr(error, "message", None) or str(error)
            self._emit(out, Failed(f"Provider error in stream: {message}"))

        return out

    def finish(self) -> list[StreamEvent]:
        out: list[StreamEvent] = []
        if not self._terminated:
            self._fail(out, "Stream ended before message_stop")
        return out

    def _close_open_tools(self, out: list[StreamEvent]) -> None:
        for index in sorted(self._open_tools):
            self._emit(out, ToolCallArguments(self._open_tools[index], "", final=True))
        self._open_tools.clear()
