"""
Character-safe line framing for byte streams.

Both line-delimited wire formats (SSE ``data:`` records and newline-delimited
JSON) share the same buffering problem: a network read can end anywhere --
in the middle of a record, or in the middle of a multi-byte UTF-8 character.
:class:`LineFramer` solves it once:

* bytes go through an incremental UTF-8 decoder, which holds back an
  incomplete trailing character until the rest of it arrives;
* decoded text is split on the terminator and only complete records are
  released; the partial tail stays buffered for the next read.
"""

from __future__ import annotations

import codecs

from parley.errors import StreamDecodeError


class LineFramer:
    """
    Split an arbitrarily-chunked byte stream into complete text records.

    Parameters
    ----------
    terminator:
        Record separator.  Defaults to ``"\\n"``.
    strip_cr:
        Remove a trailing ``"\\r"`` from each record (CRLF streams).
    """

    def __init__(self, terminator: str = "\n", strip_cr: bool = True) -> None:
        if not terminator:
            raise ValueError("terminator must be a non-empty string")
        self._terminator = terminator
        self._strip_cr = strip_cr
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Decoded text received after the last terminator."""
        return self._buffer

    def feed(self, data: bytes | str) -> list[str]:
        """Add *data* and return every record completed by it."""
        if isinstance(data, bytes):
            try:
                text = self._decoder.decode(data)
            except UnicodeDecodeError as exc:
                raise StreamDecodeError(f"Invalid UTF-8 in stream: {exc}") from exc
        else:
            text = data
        if not text:
            return []

        self._buffer += text
        if self._terminator not in self._buffer:
            return []

        *records, self._buffer = self._buffer.split(self._terminator)
        if self._strip_cr:
            records = [r[:-1] if r.endswith("\r") else r for r in records]
        return records

    def finish(self) -> str:
        """
        Flush the framer at end of input and return the unterminated tail.

        Raises ``StreamDecodeError`` if the input ended inside a multi-byte
        character.
        """
        try:
            tail = self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(
                "Stream ended in the middle of a UTF-8 character"
            ) from exc
        rest = self._buffer + tail
        self._buffer = ""
        if self._strip_cr and rest.endswith("\r"):
            rest = rest[:-1]
        return rest
