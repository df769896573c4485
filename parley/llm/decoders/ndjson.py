"""
Newline-delimited JSON decoder (Ollama ``/api/chat`` and ``/api/generate``).

Every line is a self-contained JSON object.  There is no sentinel line: the
object carrying ``"done": true`` ends the stream.  Tool calls arrive whole,
one object per call, without ids.
"""

from __future__ import annotations

import json
import logging

from parley.llm.decoders.base import LineDecoder
from parley.llm.types import (
    Failed,
    StreamEvent,
    TextDelta,
    ToolCallArguments,
    ToolCallStart,
    Usage,
)

logger = logging.getLogger(__name__)


class NDJSONDecoder(LineDecoder):
    """
    Parameters
    ----------
    cumulative:
        Set when the server repeats the whole text so far in every frame
        instead of sending increments.  The decoder then emits only the part
        beyond what it has already emitted.
    """

    def __init__(self, cumulative: bool = False) -> None:
        super().__init__("\n")
        self._cumulative = cumulative
        self._emitted = ""
        self._call_count = 0

    def _handle_line(self, line: str, out: list[StreamEvent], *, strict: bool) -> None:
        line = line.strip()
        if not line:
            return

        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            self._unparsable(out, "JSON line", line, strict)
            return
        if not isinstance(obj, dict):
            self._unparsable(out, "JSON line", line, strict)
            return

        if obj.get("error"):
            self._emit(out, Failed(f"Provider error in stream: {obj['error']}"))
            return

        message = obj.get("message") or {}
        content = message.get("content")
        if content is None:
            content = obj.get("response") or ""

        text = self._increment(content)
        if text:
            self._emit(out, TextDelta(text))

        for tc in message.get("tool_calls") or []:
            self._emit_tool_call(tc, out)

        if obj.get("done"):
            self._usage = Usage(
                input_tokens=obj.get("prompt_eval_count") or 0,
                output_tokens=obj.get("eval_count") or 0,
            )
            self._complete(out)

    def _end_of_input(self, out: list[StreamEvent]) -> None:
        self._fail(out, "Stream ended before the done flag was received")

    def _increment(self, content: str) -> str:
        if not self._cumulative:
            return content
        if len(content) <= len(self._emitted):
            return ""
        if not content.startswith(self._emitted):
            logger.warning("Cumulative frame diverged from emitted text; emitting by length")
        increment = content[len(self._emitted):]
        self._emitted = content
        return increment

    def _emit_tool_call(self, tc: dict, out: list[StreamEvent]) -> None:
        func = tc.get("function") or {}
        call_id = tc.get("id") or f"ollama_call_{self._call_count}"
        self._call_count += 1
        arguments = func.get("arguments", {})
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        self._emit(out, ToolCallStart(func.get("name", ""), call_id))
        self._emit(out, ToolCallArguments(call_id, arguments, final=True))
