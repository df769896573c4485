"""
Shared machinery for stream decoders.

A decoder turns a transport-level source into the uniform
:data:`~parley.llm.types.StreamEvent` sequence.  All decoders share the same
termination contract: exactly one ``Completed`` or ``Failed`` event ends the
sequence and every later ``feed`` returns nothing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from parley.errors import StreamDecodeError
from parley.llm.framing import LineFramer
from parley.llm.types import Completed, Failed, StreamEvent, Usage, is_terminal

logger = logging.getLogger(__name__)


class StreamDecoder(ABC):
    """Base class tracking termination for every decoder."""

    def __init__(self) -> None:
        self._terminated = False
        self._usage: Usage | None = None

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def usage(self) -> Usage | None:
        return self._usage

    @abstractmethod
    def feed(self, data: Any) -> list[StreamEvent]:
        """Consume one unit of input and return the events it completes."""
        ...

    @abstractmethod
    def finish(self) -> list[StreamEvent]:
        """Signal end of input and return any remaining events."""
        ...

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _emit(self, out: list[StreamEvent], event: StreamEvent) -> None:
        if self._terminated:
            return
        out.append(event)
        if is_terminal(event):
            self._terminated = True

    def _fail(self, out: list[StreamEvent], reason: str) -> None:
        self._emit(out, Failed(reason, StreamDecodeError(reason)))

    def _complete(self, out: list[StreamEvent]) -> None:
        self._emit(out, Completed(self._usage))


class LineDecoder(StreamDecoder):
    """
    Base for line-delimited wire formats.

    Subclasses implement :meth:`_handle_line`.  Records that fail to parse
    mid-stream are skipped; the same failure in the unterminated tail at end
    of input is fatal, because nothing can follow to complete it.
    """

    def __init__(self, terminator: str = "\n") -> None:
        super().__init__()
        self._framer = LineFramer(terminator)

    def feed(self, data: bytes | str) -> list[StreamEvent]:
        out: list[StreamEvent] = []
        if self._terminated:
            return out
        try:
            lines = self._framer.feed(data)
        except StreamDecodeError as exc:
            self._emit(out, Failed(str(exc), exc))
            return out
        for line in lines:
            self._handle_line(line, out, strict=False)
            if self._terminated:
                break
        return out

    def finish(self) -> list[StreamEvent]:
        out: list[StreamEvent] = []
        if self._terminated:
            return out
        try:
            tail = self._framer.finish()
        except StreamDecodeError as exc:
            self._emit(out, Failed(str(exc), exc))
            return out
        if tail.strip():
            self._handle_line(tail, out, strict=True)
        if not self._terminated:
            self._end_of_input(out)
        return out

    @abstractmethod
    def _handle_line(self, line: str, out: list[StreamEvent], *, strict: bool) -> None:
        ...

    @abstractmethod
    def _end_of_input(self, out: list[StreamEvent]) -> None:
        """Called when input ends without a terminal event."""
        ...

    def _unparsable(self, out: list[StreamEvent], what: str, raw: str, strict: bool) -> None:
        if strict:
            self._fail(out, f"Unterminated or malformed {what} at end of stream: {raw[:200]!r}")
        else:
            logger.warning("Skipping unparsable %s: %s", what, raw[:200])
