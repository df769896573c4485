"""
Assembles streamed tool-call events into complete invocations.

Design goals:
  - Keep one argument buffer per correlation id, so concurrent calls in one
    turn never mix fragments.
  - Release finished calls in the order their ``ToolCallStart`` events were
    observed, not the order their arguments happened to complete, so the
    visible transcript is deterministic.
  - Never drop a call silently: a call whose arguments are not valid JSON is
    still released, carrying an ``error`` the caller can surface.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from parley.llm.types import ToolCallArguments, ToolCallStart
from parley.tools.base import ToolInvocation

logger = logging.getLogger(__name__)


@dataclass
class AssembledCall:
    invocation: ToolInvocation
    error: str | None = None


class ToolCallAssembler:
    """Buffers tool-call events and emits finished calls in start order."""

    def __init__(self) -> None:
        self._buf: dict[str, dict] = {}
        self._order: list[str] = []
        self.errors: list[str] = []

    @property
    def open_calls(self) -> int:
        return len(self._order)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, event: ToolCallStart) -> None:
        if event.call_id in self._buf:
            logger.warning("Duplicate ToolCallStart for %s ignored", event.call_id)
            return
        self._buf[event.call_id] = {"name": event.name, "args": "", "final": False}
        self._order.append(event.call_id)

    def feed(self, event: ToolCallArguments) -> list[AssembledCall]:
        """
        Apply one argument fragment.

        Returns the (possibly empty) list of calls that are now ready, in
        start order.
        """
        buf = self._buf.get(event.call_id)
        if buf is None:
            logger.warning("Arguments for unannounced tool call %s", event.call_id)
            self.start(ToolCallStart("", event.call_id))
            buf = self._buf[event.call_id]

        buf["args"] += event.partial
        if event.final:
            buf["final"] = True
        return self._release_ready()

    def flush(self) -> list[AssembledCall]:
        """
        Finalize *all* remaining buffers, in start order, regardless of
        whether a final fragment was received.  Used at stream completion.
        """
        for call_id in self._order:
            self._buf[call_id]["final"] = True
        return self._release_ready()

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._buf.clear()
        self._order.clear()
        self.errors.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _release_ready(self) -> list[AssembledCall]:
        ready: list[AssembledCall] = []
        while self._order and self._buf[self._order[0]]["final"]:
            call_id = self._order.pop(0)
            ready.append(self._finalize(call_id, self._buf.pop(call_id)))
        return ready

    def _finalize(self, call_id: str, buf: dict) -> AssembledCall:
        name = buf["name"].strip()
        raw_args = buf["args"].strip() or "{}"
        try:
            args = json.loads(raw_args)
        except (json.JSONDecodeError, ValueError) as exc:
            error = f"tool_call_json_parse_failed id={call_id} err={exc}"
            self.errors.append(error)
            return AssembledCall(ToolInvocation(call_id, name, {}), error=f"malformed arguments ({getattr(exc, 'msg', exc)})")

        if not isinstance(args, dict):
            error = f"tool_call_arguments_not_object id={call_id}"
            self.errors.append(error)
            return AssembledCall(ToolInvocation(call_id, name, {}), error="arguments must be a JSON object")

        return AssembledCall(ToolInvocation(call_id, name, args))
