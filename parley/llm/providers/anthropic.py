"""
Anthropic provider built on the official ``anthropic`` SDK.

The SDK already parses the event stream, so the provider only re-tags its
typed events via :class:`~parley.llm.decoders.anthropic.AnthropicEventDecoder`.

Dependencies: ``anthropic``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import anthropic

from parley.errors import MalformedResponse, NetworkError, UpstreamError, upstream_error_for
from parley.llm.decoders.anthropic import AnthropicEventDecoder
from parley.llm.providers.base import Completion, Provider
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

logger = logging.getLogger(__name__)


def _map_sdk_error(exc: anthropic.APIError) -> UpstreamError:
    """Translate an SDK exception into the matching parley error."""
    if isinstance(exc, anthropic.APITimeoutError):
        return NetworkError(f"Request timed out: {exc}", timed_out=True)
    if isinstance(exc, anthropic.APIConnectionError):
        return NetworkError(f"Network error: {exc}")
    if isinstance(exc, anthropic.APIStatusError):
        return upstream_error_for(exc.status_code, str(exc.body or exc.message))
    return UpstreamError(None, str(exc), f"Provider error: {exc}")


class AnthropicProvider(Provider):
    """
    Parameters
    ----------
    client:
        Pre-built ``AsyncAnthropic``-compatible client.  Built from the
        config on first use when omitted.
    timeout:
        Request timeout in seconds, passed to the SDK client.
    """

    default_temperature = 1.0

    def __init__(
        self,
        config: ProviderConfig,
        registry: ToolRegistry | None = None,
        *,
        system_prompt: str | None = None,
        client: Any = None,
        timeout: float = 120.0,
    ) -> None:
        super().__init__(config, registry, system_prompt=system_prompt)
        self._client = client
        self._timeout = timeout

    def _get_client(self):
        if self._client is not None:
            return self._client

        kwargs: dict = {"api_key": self._config.api_key, "timeout": self._timeout}
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    def _tool_schema(self, registry: ToolRegistry) -> list[dict]:
        return registry.to_anthropic_schema()

    def _build_kwargs(self, messages: list[Message], cfg: ProviderConfig) -> dict:
        kwargs: dict = {
            "model": cfg.model,
            "system": self.system_prompt,
            "messages": [msg.to_wire() for msg in messages],
            "max_tokens": self._max_tokens(cfg),
            "temperature": self._temperature(cfg),
        }
        tools = self.tool_catalog()
        if tools:
            kwargs["tools"] = tools
        logger.info(
            "REQUEST: provider=%s model=%s tools=%d messages=%d",
            self.name, cfg.model, len(tools), len(messages),
        )
        return kwargs

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_events(
        self, messages: list[Message], cfg: ProviderConfig
    ) -> AsyncIterator[StreamEvent]:
        client = self._get_client()
        kwargs = self._build_kwargs(messages, cfg)
        decoder = AnthropicEventDecoder()

        try:
            async with client.messages.stream(**kwargs) as stream_mgr:
                async for sdk_event in stream_mgr:
                    for event in decoder.feed(sdk_event):
                        yield event
                    if decoder.terminated:
                        return
            for event in decoder.finish():
                yield event
        except anthropic.APIError as exc:
            raise _map_sdk_error(exc) from exc

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def _complete(self, messages: list[Message], cfg: ProviderConfig) -> Completion:
        client = self._get_client()
        kwargs = self._build_kwargs(messages, cfg)
        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise _map_sdk_error(exc) from exc

        blocks = getattr(response, "content", None)
        if blocks is None:
            raise MalformedResponse("Response carries no content blocks")

        text_parts: list[str] = []
        assembler = ToolCallAssembler()
        calls = []
        for idx, block in enumerate(blocks):
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "tool_use":
                call_id = getattr(block, "id", None) or f"toolu_{idx}"
                assembler.start(ToolCallStart(block.name, call_id))
                calls.extend(
                    assembler.feed(
                        ToolCallArguments(call_id, json.dumps(block.input or {}), final=True)
                    )
                )

        usage = None
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = Usage(
                input_tokens=getattr(raw_usage, "input_tokens", 0) or 0,
                output_tokens=getattr(raw_usage, "output_tokens", 0) or 0,
            )
        return Completion(content="".join(text_parts), usage=usage, tool_calls=calls)
