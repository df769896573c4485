"""
OpenAI-compatible chat-completion provider.

Works with any endpoint that speaks the OpenAI ``/chat/completions`` wire
protocol -- OpenAI itself, DeepSeek, Zhipu, Doubao (Volcengine Ark),
OpenRouter, Google's OpenAI-compatible Gemini endpoint, vLLM, etc.

Dependencies: ``httpx`` (async HTTP client).  No ``openai`` SDK needed.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

import httpx

from parley.errors import MalformedResponse
from parley.llm.decoders.sse import SSEDecoder
from parley.llm.providers.base import Completion
from parley.llm.providers.http import HTTPProvider
from parley.llm.tool_call_assembler import ToolCallAssembler
from parley.llm.types import (
    Message,
    ProviderConfig,
    StreamEvent,
    ToolCallArguments,
    ToolCallStart,
    Usage,
)
from parley.tools.registry import ToolRegistry


class OpenAICompatProvider(HTTPProvider):
    """
    Stream-capable provider for any OpenAI-API-compatible endpoint.

    Parameters
    ----------
    default_base_url:
        Used when the config carries no ``base_url``.
    default_temperature:
        Used when the config carries no ``temperature``.
    extra_body:
        Vendor-specific sampling fields merged into every request body.
    """

    def __init__(
        self,
        config: ProviderConfig,
        registry: ToolRegistry | None = None,
        *,
        system_prompt: str | None = None,
        default_base_url: str = "https://api.openai.com/v1",
        default_temperature: float = 0.7,
        extra_body: dict[str, Any] | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.default_base_url = default_base_url
        self.default_temperature = default_temperature
        self._extra_body = dict(extra_body or {})
        super().__init__(
            config,
            registry,
            system_prompt=system_prompt,
            timeout=timeout,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self, cfg: ProviderConfig, stream: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if stream:
            headers["Accept"] = "text/event-stream"
        if cfg.api_key:
            headers["Authorization"] = f"Bearer {cfg.api_key}"
        return headers

    def _build_body(self, messages: list[Message], cfg: ProviderConfig, stream: bool) -> dict:
        wire_messages = [{"role": "system", "content": self.system_prompt}]
        wire_messages.extend(msg.to_wire() for msg in messages)

        body: dict = {
            "model": cfg.model,
            "messages": wire_messages,
            "max_tokens": self._max_tokens(cfg),
            "temperature": self._temperature(cfg),
            "stream": stream,
        }
        body.update(self._extra_body)

        tools = self.tool_catalog()
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        self._log_request(self.endpoint, body)
        return body

    def _tool_schema(self, registry: ToolRegistry) -> list[dict]:
        return registry.to_openai_schema()

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_events(
        self, messages: list[Message], cfg: ProviderConfig
    ) -> AsyncIterator[StreamEvent]:
        body = self._build_body(messages, cfg, stream=True)
        headers = self._build_headers(cfg, stream=True)
        async for event in self._stream_request(self.endpoint, body, headers, SSEDecoder()):
            yield event

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def _complete(self, messages: list[Message], cfg: ProviderConfig) -> Completion:
        body = self._build_body(messages, cfg, stream=False)
        headers = self._build_headers(cfg, stream=False)
        data = await self._post_json(self.endpoint, body, headers)
        return self._parse_completion(data)

    def _parse_completion(self, data: dict) -> Completion:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            raise MalformedResponse("Response carries no choices")

        message = choices[0].get("message") or {}
        content = message.get("content")
        raw_calls = message.get("tool_calls") or []
        if content is None and not raw_calls:
            raise MalformedResponse("Response message has neither content nor tool calls")

        assembler = ToolCallAssembler()
        calls = []
        for idx, raw in enumerate(raw_calls):
            func = raw.get("function") or {}
            call_id = raw.get("id") or f"call_{idx}"
            assembler.start(ToolCallStart(func.get("name") or "", call_id))
            calls.extend(
                assembler.feed(
                    ToolCallArguments(call_id, func.get("arguments") or "", final=True)
                )
            )

        usage = None
        raw_usage = data.get("usage")
        if isinstance(raw_usage, dict):
            usage = Usage(
                input_tokens=raw_usage.get("prompt_tokens") or 0,
                output_tokens=raw_usage.get("completion_tokens") or 0,
            )
        return Completion(content=content or "", usage=usage, tool_calls=calls)
