"""
Token estimates for filling ``Usage`` when a provider reply carries none.

Uses ``tiktoken`` (the ``tokens`` extra) when it is importable, otherwise a
character-count heuristic.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from parley.llm.types import Message, Usage

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD = 4


@lru_cache(maxsize=8)
def _encoding_for(model: str) -> Any:
    try:
        import tiktoken  # type: ignore[import-untyped]
    except ImportError:
        return None
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        logger.debug("No tiktoken encoding for %s; using cl100k_base", model)
        return tiktoken.get_encoding("cl100k_base")


class TokenCounter:
    """Counts tokens for one model name."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model
        self._encoding = _encoding_for(model or "gpt-4o")

    @property
    def exact(self) -> bool:
        return self._encoding is not None

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        if self._encoding is None:
            return max(1, len(text) // CHARS_PER_TOKEN)
        return len(self._encoding.encode(text))

    def count_messages(self, messages: list[Message], system: str = "") -> int:
        """Prompt size including a fixed per-message overhead for role framing."""
        total = self.count_text(system) + MESSAGE_OVERHEAD if system else 0
        return total + sum(MESSAGE_OVERHEAD + self.count_text(m.content) for m in messages)

    def estimate_usage(self, messages: list[Message], system: str, output: str) -> Usage:
        return Usage(
            input_tokens=self.count_messages(messages, system),
            output_tokens=self.count_text(output),
        )
