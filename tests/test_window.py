"""Tests for parley.llm.window.recent_window."""

import pytest

from parley.llm.types import Message
from parley.llm.window import recent_window


def conv(*roles):
    return [Message(role=r, content=f"{r}-{i}") for i, r in enumerate(roles)]


class TestRecentWindow:
    def test_short_history_returned_whole(self):
        msgs = conv("user", "assistant")
        assert recent_window(msgs, 5) == msgs

    def test_last_n_kept_in_order(self):
        msgs = conv("user", "assistant", "user", "assistant", "user")
        assert [m.content for m in recent_window(msgs, 3)] == [
            "user-2", "assistant-3", "user-4",
        ]

    def test_newest_user_message_always_included(self):
        msgs = conv("user", "assistant", "user", "assistant", "assistant", "assistant")
        window = recent_window(msgs, 2)
        assert len(window) == 2
        assert window[0].content == "user-2"
        assert window[1].content == "assistant-5"

    def test_no_user_message(self):
        msgs = conv("assistant", "assistant", "assistant")
        assert len(recent_window(msgs, 2)) == 2

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            recent_window(conv("user"), 0)
