"""Tests for OpenAICompatProvider against an in-process httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest

from parley.errors import (
    AuthenticationError,
    ConfigurationError,
    MalformedResponse,
    NetworkError,
    RateLimitError,
    StreamDecodeError,
    UpstreamError,
)
from parley.llm.providers.base import TOOL_NOTICE
from parley.llm.providers.openai_compat import OpenAICompatProvider
from parley.llm.types import Message, ProviderConfig, Usage
from tests.mock_tools import make_registry

USER = [Message(role="user", content="plan 3 days in Chengdu")]


def sse(*payloads) -> bytes:
    out = b""
    for p in payloads:
        data = p if isinstance(p, str) else json.dumps(p)
        out += f"data: {data}\n\n".encode("utf-8")
    return out


def delta(text: str, finish_reason=None) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": finish_reason}]}


class Recorder:
    """MockTransport handler that records requests and replays a response."""

    def __init__(self, response=None, *, status: int = 200, body: bytes = b"", exc=None):
        self.requests: list[httpx.Request] = []
        self._response = response
        self._status = status
        self._body = body
        self._exc = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._exc is not None:
            raise self._exc(f"simulated {self._exc.__name__}", request=request)
        if self._response is not None:
            return httpx.Response(self._status, json=self._response)
        return httpx.Response(self._status, content=self._body)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_provider(handler, registry=None, **kwargs) -> OpenAICompatProvider:
    config = ProviderConfig(
        provider=kwargs.pop("provider", "deepseek"),
        api_key="sk-test-abcdef",
        model="deepseek-chat",
        base_url=kwargs.pop("base_url", None),
    )
    kwargs.setdefault("default_base_url", "https://api.deepseek.com/v1")
    return OpenAICompatProvider(
        config, registry, transport=httpx.MockTransport(handler), **kwargs
    )


class TestStreaming:
    async def test_day_one_chunks_delivered_in_order(self):
        handler = Recorder(body=sse(delta("D"), delta("ay"), delta(" 1"), "[DONE]"))
        provider = make_provider(handler)
        seen: list[str] = []
        await provider.chat_stream(USER, seen.append)
        assert seen == ["D", "ay", " 1"]

    async def test_request_shape(self):
        handler = Recorder(body=sse(delta("ok"), "[DONE]"))
        provider = make_provider(handler, registry=make_registry())
        [c async for c in provider.stream(USER)]

        request = handler.requests[0]
        assert str(request.url) == "https://api.deepseek.com/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test-abcdef"
        assert request.headers["accept"] == "text/event-stream"

        body = handler.last_json
        assert body["model"] == "deepseek-chat"
        assert body["stream"] is True
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 4096
        assert body["messages"][0]["role"] == "system"
        assert body["messages"][1] == {"role": "user", "content": "plan 3 days in Chengdu"}
        assert body["tool_choice"] == "auto"
        assert {t["function"]["name"] for t in body["tools"]} >= {"echo", "get_weather"}

    async def test_no_tools_without_registry(self):
        handler = Recorder(body=sse(delta("ok"), "[DONE]"))
        provider = make_provider(handler)
        [c async for c in provider.stream(USER)]
        assert "tools" not in handler.last_json
        assert "tool_choice" not in handler.last_json

    async def test_extra_body_and_default_temperature(self):
        handler = Recorder(body=sse(delta("ok"), "[DONE]"))
        provider = make_provider(
            handler,
            default_temperature=1.0,
            extra_body={"top_p": 0.9},
        )
        [c async for c in provider.stream(USER)]
        assert handler.last_json["temperature"] == 1.0
        assert handler.last_json["top_p"] == 0.9

    async def test_config_base_url_wins(self):
        handler = Recorder(body=sse(delta("ok"), "[DONE]"))
        provider = make_provider(handler, base_url="http://localhost:8080/v1/")
        [c async for c in provider.stream(USER)]
        assert str(handler.requests[0].url) == "http://localhost:8080/v1/chat/completions"

    async def test_tool_call_executed_mid_stream(self):
        body = sse(
            delta("Checking. "),
            {"choices": [{"delta": {"tool_calls": [
                {"index": 0, "id": "call_1", "function": {"name": "get_weather", "arguments": ""}}
            ]}}]},
            {"choices": [{"delta": {"tool_calls": [
                {"index": 0, "function": {"arguments": '{"city": "Chengdu"}'}}
            ]}}]},
            {"choices": [{"delta": {}, "finish_reason": "tool_calls"}]},
            "[DONE]",
        )
        provider = make_provider(Recorder(body=body), registry=make_registry())
        chunks = [c async for c in provider.stream(USER)]
        assert chunks == [
            "Checking. ",
            TOOL_NOTICE.format(name="get_weather"),
            "Sunny in Chengdu",
        ]

    async def test_truncated_stream_raises(self):
        provider = make_provider(Recorder(body=sse(delta("half"))))
        with pytest.raises(StreamDecodeError):
            [c async for c in provider.stream(USER)]

    async def test_in_band_error_raises_upstream_error(self):
        provider = make_provider(Recorder(body=sse({"error": {"message": "context too long"}})))
        with pytest.raises(UpstreamError, match="context too long"):
            [c async for c in provider.stream(USER)]


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, error_cls",
        [(401, AuthenticationError), (403, AuthenticationError), (429, RateLimitError), (500, UpstreamError)],
    )
    async def test_stream_status_errors(self, status, error_cls):
        provider = make_provider(Recorder(status=status, body=b'{"error": "nope"}'))
        with pytest.raises(error_cls) as exc_info:
            [c async for c in provider.stream(USER)]
        assert exc_info.value.status_code == status
        assert "nope" in exc_info.value.body

    async def test_chat_status_error(self):
        provider = make_provider(Recorder(status=401, body=b"unauthorized"))
        with pytest.raises(AuthenticationError):
            await provider.chat(USER)

    async def test_connect_error(self):
        provider = make_provider(Recorder(exc=httpx.ConnectError))
        with pytest.raises(NetworkError) as exc_info:
            await provider.chat(USER)
        assert exc_info.value.status_code is None
        assert not exc_info.value.timed_out

    async def test_timeout_flagged(self):
        provider = make_provider(Recorder(exc=httpx.ReadTimeout))
        with pytest.raises(NetworkError) as exc_info:
            [c async for c in provider.stream(USER)]
        assert exc_info.value.timed_out

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError):
            OpenAICompatProvider(ProviderConfig("openai", api_key="", model="gpt-4o"))


class TestSingleShot:
    async def test_content_and_usage(self):
        handler = Recorder({
            "choices": [{"message": {"role": "assistant", "content": "Day 1: Panda base."}}],
            "usage": {"prompt_tokens": 30, "completion_tokens": 6},
        })
        provider = make_provider(handler)
        response = await provider.chat(USER)
        assert response.content == "Day 1: Panda base."
        assert response.usage == Usage(30, 6)
        assert handler.last_json["stream"] is False
        assert handler.requests[0].headers.get("accept") != "text/event-stream"

    async def test_tool_calls_in_reply(self):
        handler = Recorder({
            "choices": [{"message": {
                "content": None,
                "tool_calls": [{
                    "id": "call_9",
                    "type": "function",
                    "function": {"name": "echo", "arguments": '{"message": "pong"}'},
                }],
            }}],
        })
        provider = make_provider(handler, registry=make_registry())
        response = await provider.chat(USER)
        assert response.content == TOOL_NOTICE.format(name="echo") + "pong"
        assert response.usage is not None

    async def test_missing_choices(self):
        provider = make_provider(Recorder({"object": "chat.completion"}))
        with pytest.raises(MalformedResponse):
            await provider.chat(USER)

    async def test_missing_content(self):
        provider = make_provider(Recorder({"choices": [{"message": {"role": "assistant"}}]}))
        with pytest.raises(MalformedResponse):
            await provider.chat(USER)

    async def test_non_json_body(self):
        provider = make_provider(Recorder(body=b"<html>gateway</html>"))
        with pytest.raises(MalformedResponse):
            await provider.chat(USER)
