"""Tests for parley.llm.decoders.sse.SSEDecoder."""

from __future__ import annotations

import json

import pytest

from parley.errors import StreamDecodeError
from parley.llm.decoders.sse import SSEDecoder
from parley.llm.types import (
    Completed,
    Failed,
    TextDelta,
    ToolCallArguments,
    ToolCallStart,
    Usage,
)


def record(payload: dict | str) -> bytes:
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n".encode("utf-8")


def text_chunk(text: str, finish_reason: str | None = None) -> dict:
    return {"choices": [{"delta": {"content": text}, "finish_reason": finish_reason}]}


def tool_chunk(index: int, *, call_id=None, name=None, arguments=None, finish_reason=None) -> dict:
    function = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    fragment = {"index": index, "function": function}
    if call_id is not None:
        fragment["id"] = call_id
    return {
        "choices": [
            {"delta": {"tool_calls": [fragment]}, "finish_reason": finish_reason}
        ]
    }


def decode(body: bytes, chunk_size: int | None = None) -> list:
    decoder = SSEDecoder()
    events = []
    if chunk_size is None:
        events.extend(decoder.feed(body))
    else:
        for i in range(0, len(body), chunk_size):
            events.extend(decoder.feed(body[i:i + chunk_size]))
    events.extend(decoder.finish())
    return events


class TestTextStreaming:
    def test_day_one_scenario(self):
        body = (
            record(text_chunk("D"))
            + record(text_chunk("ay"))
            + record(text_chunk(" 1"))
            + record("[DONE]")
        )
        events = decode(body)
        assert events == [TextDelta("D"), TextDelta("ay"), TextDelta(" 1"), Completed()]

    def test_comments_and_other_fields_ignored(self):
        body = b": keep-alive\n\nevent: message\nid: 7\n" + record(text_chunk("hi")) + record("[DONE]")
        assert decode(body) == [TextDelta("hi"), Completed()]

    def test_empty_content_not_emitted(self):
        body = record(text_chunk("")) + record({"choices": [{"delta": {"role": "assistant"}}]}) + record("[DONE]")
        assert decode(body) == [Completed()]

    def test_usage_captured(self):
        body = (
            record(text_chunk("ok", finish_reason="stop"))
            + record({"choices": [], "usage": {"prompt_tokens": 12, "completion_tokens": 3}})
            + record("[DONE]")
        )
        events = decode(body)
        assert events[-1] == Completed(Usage(12, 3))


class TestSplitInvariance:
    BODY = (
        record(text_chunk("成都 itinerary: "))
        + record(tool_chunk(0, call_id="call_w", name="get_weather"))
        + record(tool_chunk(0, arguments='{"city": '))
        + record(tool_chunk(0, arguments='"成都"}'))
        + record(text_chunk("", finish_reason="tool_calls"))
        + record("[DONE]")
    )

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 5, 7, 64])
    def test_any_read_split_gives_same_events(self, chunk_size):
        assert decode(self.BODY, chunk_size) == decode(self.BODY)

    def test_whole_body_events(self):
        assert decode(self.BODY) == [
            TextDelta("成都 itinerary: "),
            ToolCallStart("get_weather", "call_w"),
            ToolCallArguments("call_w", '{"city": '),
            ToolCallArguments("call_w", '"成都"}'),
            ToolCallArguments("call_w", "", final=True),
            Completed(),
        ]


class TestToolCalls:
    def test_two_calls_keyed_by_index(self):
        body = (
            record(tool_chunk(0, call_id="a", name="alpha"))
            + record(tool_chunk(1, call_id="b", name="beta"))
            + record(tool_chunk(1, arguments='{"y": 2}'))
            + record(tool_chunk(0, arguments='{"x": 1}'))
            + record(text_chunk("", finish_reason="tool_calls"))
            + record("[DONE]")
        )
        events = decode(body)
        assert events == [
            ToolCallStart("beta", "b"),
            ToolCallArguments("b", '{"y": 2}'),
            ToolCallStart("alpha", "a"),
            ToolCallArguments("a", '{"x": 1}'),
            ToolCallArguments("a", "", final=True),
            ToolCallArguments("b", "", final=True),
            Completed(),
        ]

    def test_name_split_across_fragments(self):
        body = (
            record(tool_chunk(0, call_id="c1", name="get_"))
            + record(tool_chunk(0, name="weather"))
            + record(tool_chunk(0, arguments="{}"))
            + record("[DONE]")
        )
        events = decode(body)
        assert events[0] == ToolCallStart("get_weather", "c1")

    def test_missing_id_synthesized(self):
        body = record(tool_chunk(0, name="ping", arguments="{}")) + record("[DONE]")
        events = decode(body)
        assert isinstance(events[0], ToolCallStart)
        assert events[0].call_id == "call_0"

    def test_duplicate_ids_made_unique(self):
        body = (
            record(tool_chunk(0, call_id="dup", name="a", arguments="{}"))
            + record(tool_chunk(1, call_id="dup", name="b", arguments="{}"))
            + record("[DONE]")
        )
        starts = [e for e in decode(body) if isinstance(e, ToolCallStart)]
        assert len({s.call_id for s in starts}) == 2

    def test_unindexed_calls_in_separate_records_stay_separate(self):
        def unindexed(name, arguments):
            fragment = {"function": {"name": name, "arguments": arguments}}
            return {"choices": [{"delta": {"tool_calls": [fragment]}}]}

        body = (
            record(unindexed("a", '{"x":1}'))
            + record(unindexed("b", '{"y":2}'))
            + record(text_chunk("", finish_reason="tool_calls"))
            + record("[DONE]")
        )
        assert decode(body) == [
            ToolCallStart("a", "call_0"),
            ToolCallArguments("call_0", '{"x":1}'),
            ToolCallStart("b", "call_1"),
            ToolCallArguments("call_1", '{"y":2}'),
            ToolCallArguments("call_0", "", final=True),
            ToolCallArguments("call_1", "", final=True),
            Completed(),
        ]

    def test_call_without_arguments_started_on_close(self):
        body = record(tool_chunk(0, call_id="n", name="noop")) + record("[DONE]")
        assert decode(body) == [
            ToolCallStart("noop", "n"),
            ToolCallArguments("n", "", final=True),
            Completed(),
        ]


class TestTermination:
    def test_nothing_after_done(self):
        decoder = SSEDecoder()
        events = decoder.feed(record("[DONE]") + record(text_chunk("late")))
        assert events == [Completed()]
        assert decoder.terminated
        assert decoder.feed(record(text_chunk("later"))) == []
        assert decoder.finish() == []

    def test_end_without_done_after_finish_reason_completes(self):
        body = record(text_chunk("bye", finish_reason="stop"))
        events = decode(body)
        assert events == [TextDelta("bye"), Completed()]

    def test_end_without_any_completion_signal_fails(self):
        events = decode(record(text_chunk("cut")))
        assert events[0] == TextDelta("cut")
        assert isinstance(events[-1], Failed)
        assert isinstance(events[-1].error, StreamDecodeError)

    def test_malformed_record_mid_stream_skipped(self):
        body = b"data: {not json\n\n" + record(text_chunk("ok")) + record("[DONE]")
        assert decode(body) == [TextDelta("ok"), Completed()]

    def test_malformed_tail_is_fatal(self):
        body = record(text_chunk("ok", finish_reason="stop")) + b'data: {"choices": ['
        events = decode(body)
        assert events[0] == TextDelta("ok")
        assert isinstance(events[-1], Failed)
        assert "end of stream" in events[-1].reason

    def test_in_band_error_fails(self):
        events = decode(record({"error": {"message": "overloaded"}}))
        assert len(events) == 1
        assert isinstance(events[0], Failed)
        assert "overloaded" in events[0].reason

    def test_invalid_utf8_fails(self):
        decoder = SSEDecoder()
        events = decoder.feed(b"data: \xff\n\n")
        assert isinstance(events[0], Failed)
        assert decoder.terminated
