"""
Server-Sent Events decoder for OpenAI-compatible chat completions.

Each record has the form::

    data: {json}

The sentinel ``data: [DONE]`` terminates the stream.  Tool calls arrive as
fragments keyed by ``index``; the call id and name usually come with the
first fragment and the JSON arguments are spread across the rest.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

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

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass
class _OpenCall:
    call_id: str
    name: str = ""
    started: bool = False
    closed: bool = False


class SSEDecoder(LineDecoder):
    """Decode an OpenAI-style ``text/event-stream`` body into stream events."""

    def __init__(self) -> None:
        super().__init__("\n")
        self._calls: dict[object, _OpenCall] = {}
        self._order: list[_OpenCall] = []
        self._seen_ids: set[str] = set()
        self._finish_reason: str | None = None

    @property
    def finish_reason(self) -> str | None:
        return self._finish_reason

    # ------------------------------------------------------------------
    # Line handling
    # ------------------------------------------------------------------

    def _handle_line(self, line: str, out: list[StreamEvent], *, strict: bool) -> None:
        if not line.strip() or line.startswith(":"):
            # Blank separator or keep-alive comment.
            return
        if not line.startswith(DATA_PREFIX):
            # event:, id:, retry: -- nothing we need.
            return

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            self._close_open_calls(out)
            self._complete(out)
            return

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            self._unparsable(out, "SSE record", data, strict)
            return
        if not isinstance(payload, dict):
            self._unparsable(out, "SSE record", data, strict)
            return

        self._handle_payload(payload, out)

    def _end_of_input(self, out: list[StreamEvent]) -> None:
        if self._finish_reason is not None:
            logger.debug("SSE stream ended without [DONE] after finish_reason=%s", self._finish_reason)
            self._close_open_calls(out)
            self._complete(out)
        else:
            self._fail(out, "Stream ended before a completion signal was received")

    # ------------------------------------------------------------------
    # Payload handling
    # ------------------------------------------------------------------

    def _handle_payload(self, payload: dict, out: list[StreamEvent]) -> None:
        error = payload.get("error")
        if error and not payload.get("choices"):
            message = error.get("message") if isinstance(error, dict) else str(error)
            self._emit(out, Failed(f"Provider error in stream: {message}"))
            return

        usage = payload.get("usage")
        if isinstance(usage, dict):
            self._usage = Usage(
                input_tokens=usage.get("prompt_tokens") or 0,
                output_tokens=usage.get("completion_tokens") or 0,
            )

        choices = payload.get("choices")
        if not choices:
            return

        choice = choices[0]
        delta = choice.get("delta") or {}

        content = delta.get("content")
        if content:
            self._emit(out, TextDelta(content))

        for position, raw in enumerate(delta.get("tool_calls") or []):
            self._handle_tool_fragment(raw, position, out)

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            self._finish_reason = finish_reason
            self._close_open_calls(out)

    def _handle_tool_fragment(self, raw: dict, position: int, out: list[StreamEvent]) -> None:
        func = raw.get("function") or {}
        key = raw.get("index")
        unkeyed = key is None and not raw.get("id")
        if key is None:
            key = raw.get("id") or position

        call = self._calls.get(key)
        # Without index or id, a named fragment after a started call is a new call.
        replaces_started = unkeyed and call is not None and call.started and func.get("name")
        if call is None or call.closed or replaces_started:
            call = _OpenCall(call_id=self._unique_id(raw.get("id"), len(self._order)))
            self._calls[key] = call
            self._order.append(call)
        elif raw.get("id") and not call.started and raw["id"] not in self._seen_ids:
            call.call_id = self._unique_id(raw["id"], len(self._order))

        if func.get("name"):
            call.name += func["name"]

        args = func.get("arguments")
        if args:
            if not isinstance(args, str):
                args = json.dumps(args)
            self._start(call, out)
            self._emit(out, ToolCallArguments(call.call_id, args))

    # ------------------------------------------------------------------
    # Call bookkeeping
    # ------------------------------------------------------------------

    def _unique_id(self, wanted: str | None, ordinal: int) -> str:
        call_id = wanted or f"call_{ordinal}"
        if call_id in self._seen_ids:
            call_id = f"{call_id}_{ordinal}"
        self._seen_ids.add(call_id)
        return call_id

    def _start(self, call: _OpenCall, out: list[StreamEvent]) -> None:
        if not call.started:
            call.started = True
            self._emit(out, ToolCallStart(call.name.strip(), call.call_id))

    def _close_open_calls(self, out: list[StreamEvent]) -> None:
        for call in self._order:
            if call.closed:
                continue
            self._start(call, out)
            self._emit(out, ToolCallArguments(call.call_id, "", final=True))
            call.closed = True
