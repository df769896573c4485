"""Bounded recent-history window applied by callers before a chat turn."""

from __future__ import annotations

from parley.llm.types import Message


def recent_window(messages: list[Message], limit: int) -> list[Message]:
    """
    Return the last *limit* messages, always including the newest user message.

    Order is preserved.  If the newest user message falls outside the window
    (e.g. a run of assistant messages follows it) it is kept in front of the
    window and the window shrinks by one so the total stays at *limit*.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    if len(messages) <= limit:
        return list(messages)

    newest_user = None
    for idx in range(len(messages) - 1, -1, -1):
        if messages[idx].role == "user":
            newest_user = idx
            break

    start = len(messages) - limit
    if newest_user is None or newest_user >= start:
        return list(messages[start:])
    return [messages[newest_user]] + list(messages[start + 1:])
