"""Tests for parley.llm.tool_call_assembler.ToolCallAssembler."""

from __future__ import annotations

import json

from parley.llm.tool_call_assembler import ToolCallAssembler
from parley.llm.types import ToolCallArguments, ToolCallStart


class TestSingleToolCall:
    """Assemble a single tool call from incremental fragments."""

    def test_basic_assembly(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("read_file", "call_1"))

        assert asm.feed(ToolCallArguments("call_1", '{"path": ')) == []
        assert asm.feed(ToolCallArguments("call_1", '"/etc/hosts"}')) == []

        result = asm.feed(ToolCallArguments("call_1", "", final=True))
        assert len(result) == 1

        inv = result[0].invocation
        assert result[0].error is None
        assert inv.id == "call_1"
        assert inv.name == "read_file"
        assert inv.arguments == {"path": "/etc/hosts"}

    def test_single_final_fragment_with_everything(self):
        """A provider may deliver all arguments in one final fragment."""
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("ping", "call_x"))
        result = asm.feed(ToolCallArguments("call_x", '{"host": "localhost"}', final=True))
        assert len(result) == 1
        assert result[0].invocation.arguments == {"host": "localhost"}

    def test_empty_arguments_become_empty_object(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("noop", "n1"))
        result = asm.feed(ToolCallArguments("n1", "  ", final=True))
        assert result[0].invocation.arguments == {}
        assert asm.errors == []

    def test_arguments_without_start_are_not_dropped(self):
        asm = ToolCallAssembler()
        result = asm.feed(ToolCallArguments("orphan", "{}", final=True))
        assert len(result) == 1
        assert result[0].invocation.id == "orphan"

    def test_duplicate_start_ignored(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("alpha", "c0"))
        asm.start(ToolCallStart("beta", "c0"))
        assert asm.open_calls == 1
        result = asm.feed(ToolCallArguments("c0", "{}", final=True))
        assert result[0].invocation.name == "alpha"


class TestMultipleConcurrentToolCalls:
    """Two or more tool calls buffered side by side under different ids."""

    def test_fragments_never_mix(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("alpha", "c0"))
        asm.start(ToolCallStart("beta", "c1"))

        asm.feed(ToolCallArguments("c0", '{"x": '))
        asm.feed(ToolCallArguments("c1", '{"y": '))
        asm.feed(ToolCallArguments("c0", "1}"))
        asm.feed(ToolCallArguments("c1", "2}"))

        r0 = asm.feed(ToolCallArguments("c0", "", final=True))
        r1 = asm.feed(ToolCallArguments("c1", "", final=True))
        assert [c.invocation.arguments for c in r0] == [{"x": 1}]
        assert [c.invocation.arguments for c in r1] == [{"y": 2}]

    def test_release_follows_start_order(self):
        asm = ToolCallAssembler()
        for idx in range(3):
            asm.start(ToolCallStart(f"tool_{idx}", f"c{idx}"))
            asm.feed(ToolCallArguments(f"c{idx}", json.dumps({"idx": idx})))

        # Closing out of order holds later calls back until earlier ones finish.
        assert asm.feed(ToolCallArguments("c2", "", final=True)) == []
        assert asm.feed(ToolCallArguments("c1", "", final=True)) == []
        released = asm.feed(ToolCallArguments("c0", "", final=True))

        assert [c.invocation.name for c in released] == ["tool_0", "tool_1", "tool_2"]
        assert asm.open_calls == 0


class TestMalformedJSON:
    """Malformed argument strings still release the call, carrying an error."""

    def test_invalid_json_on_final(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("broken", "bad"))
        asm.feed(ToolCallArguments("bad", "NOT VALID JSON {{{"))
        result = asm.feed(ToolCallArguments("bad", "", final=True))

        assert len(result) == 1
        assert result[0].error is not None
        assert result[0].error.startswith("malformed arguments")
        assert len(asm.errors) == 1
        assert "tool_call_json_parse_failed" in asm.errors[0]
        assert "id=bad" in asm.errors[0]

    def test_non_object_arguments(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("listy", "l1"))
        result = asm.feed(ToolCallArguments("l1", "[1, 2]", final=True))
        assert result[0].error == "arguments must be a JSON object"
        assert result[0].invocation.arguments == {}

    def test_malformed_does_not_block_valid_calls(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("broken", "bad"))
        asm.start(ToolCallStart("ok", "good"))
        asm.feed(ToolCallArguments("bad", "{BAD", final=True))
        result = asm.feed(ToolCallArguments("good", '{"a": 1}', final=True))
        assert result[0].invocation.name == "ok"
        assert result[0].error is None


class TestFlush:
    """flush() finalizes every remaining buffer."""

    def test_flush_completes_open_buffers_in_order(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("first", "f0"))
        asm.start(ToolCallStart("second", "f1"))
        asm.feed(ToolCallArguments("f1", '{"done": true}'))
        asm.feed(ToolCallArguments("f0", "{}"))

        flushed = asm.flush()
        assert [c.invocation.name for c in flushed] == ["first", "second"]
        assert flushed[1].invocation.arguments == {"done": True}
        assert asm.open_calls == 0

    def test_flush_on_empty_assembler(self):
        assert ToolCallAssembler().flush() == []

    def test_reset_discards_state(self):
        asm = ToolCallAssembler()
        asm.start(ToolCallStart("x", "r0"))
        asm.feed(ToolCallArguments("r0", "{oops", final=True))
        asm.reset()
        assert asm.open_calls == 0
        assert asm.errors == []
