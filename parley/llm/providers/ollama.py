"""
Ollama provider.

Streams responses from a local Ollama instance via its ``/api/chat`` endpoint.
Supports tool calling when the Ollama model advertises it.

Dependencies: ``httpx``.
"""

from __future__ import annotations

import json
from typing import AsyncIterator

from parley.errors import MalformedResponse
from parley.llm.decoders.ndjson import NDJSONDecoder
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

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaProvider(HTTPProvider):
    """
    Provider for a local `Ollama <https://ollama.com>`_ instance.

    No credential is needed; ``base_url`` defaults to the local daemon.
    """

    default_base_url = DEFAULT_OLLAMA_URL
    requires_api_key = False

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/chat"

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_body(self, messages: list[Message], cfg: ProviderConfig, stream: bool) -> dict:
        wire_messages = [{"role": "system", "content": self.system_prompt}]
        wire_messages.extend(msg.to_wire() for msg in messages)

        body: dict = {
            "model": cfg.model,
            "messages": wire_messages,
            "stream": stream,
            "options": {
                "temperature": self._temperature(cfg),
                "num_predict": self._max_tokens(cfg),
            },
        }

        tools = self.tool_catalog()
        if tools:
            body["tools"] = tools
        self._log_request(self.endpoint, body)
        return body

    def _tool_schema(self, registry: ToolRegistry) -> list[dict]:
        return registry.to_ollama_schema()

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_events(
        self, messages: list[Message], cfg: ProviderConfig
    ) -> AsyncIterator[StreamEvent]:
        body = self._build_body(messages, cfg, stream=True)
        headers = {"Content-Type": "application/json"}
        async for event in self._stream_request(self.endpoint, body, headers, NDJSONDecoder()):
            yield event

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def _complete(self, messages: list[Message], cfg: ProviderConfig) -> Completion:
        body = self._build_body(messages, cfg, stream=False)
        data = await self._post_json(self.endpoint, body, {"Content-Type": "application/json"})
        if data.get("error"):
            raise MalformedResponse(f"Provider error: {data['error']}")

        message = data.get("message")
        if not isinstance(message, dict):
            raise MalformedResponse("Response carries no message")

        assembler = ToolCallAssembler()
        calls = []
        for idx, tc in enumerate(message.get("tool_calls") or []):
            func = tc.get("function") or {}
            call_id = tc.get("id") or f"ollama_call_{idx}"
            arguments = func.get("arguments", {})
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            assembler.start(ToolCallStart(func.get("name") or "", call_id))
            calls.extend(assembler.feed(ToolCallArguments(call_id, arguments, final=True)))

        usage = None
        if "prompt_eval_count" in data or "eval_count" in data:
            usage = Usage(
                input_tokens=data.get("prompt_eval_count") or 0,
                output_tokens=data.get("eval_count") or 0,
            )
        return Completion(content=message.get("content") or "", usage=usage, tool_calls=calls)
