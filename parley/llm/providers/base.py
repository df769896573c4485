"""
Abstract base class for LLM providers.

A provider adapts the uniform chat contract to one backend family.  Concrete
classes implement only the wire-specific parts:

  - ``_stream_events`` -- issue the streaming request and decode it into
    uniform :data:`~parley.llm.types.StreamEvent` objects;
  - ``_complete`` -- issue a single-shot request;
  - ``_tool_schema`` -- translate the tool catalog into the backend's dialect.

Everything above the decoder -- forwarding text, buffering tool-call
arguments per call id, executing tools and splicing their results back into
the visible stream -- lives here and is shared by every provider.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

from parley.errors import (
    ConfigurationError,
    ParleyError,
    StreamDecodeError,
    ToolError,
    UnknownTool,
    UpstreamError,
)
from parley.llm.token_counter import TokenCounter
from parley.llm.tool_call_assembler import AssembledCall, ToolCallAssembler
from parley.llm.types import (
    ChatResponse,
    Completed,
    Failed,
    Message,
    ProviderConfig,
    StreamEvent,
    TextDelta,
    ToolCallArguments,
    ToolCallStart,
    Usage,
)
from parley.prompts.system import build_system_prompt
from parley.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TOOL_NOTICE = "\n\n[tool] Invoking {name}...\n\n"
TOOL_FAILED = "\n[tool] Tool call failed: {reason}\n"

DEFAULT_MAX_TOKENS = 4096

ChunkCallback = Callable[[str], "Awaitable[None] | None"]


@dataclass
class Completion:
    """What a provider's single-shot request produced, before tool handling."""

    content: str
    usage: Usage | None = None
    tool_calls: list[AssembledCall] = field(default_factory=list)


def _discard_result(task: asyncio.Future) -> None:
    # Retrieve the outcome so an abandoned tool never logs "exception was
    # never retrieved".
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("Background tool execution finished with error after cancel: %s", exc)


class Provider(ABC):
    """
    A provider encapsulates access to a single LLM backend.

    Parameters
    ----------
    config:
        The immutable configuration this instance is bound to.
    registry:
        Tool registry whose catalog is offered to the model.  ``None``
        disables tool calling.
    system_prompt:
        Overrides the default system prompt.
    """

    #: Whether the backend protocol can express tool calling at all.
    supports_tools: bool = True
    #: Whether a credential must be present before any request is made.
    requires_api_key: bool = True
    default_temperature: float = 0.7

    def __init__(
        self,
        config: ProviderConfig,
        registry: ToolRegistry | None = None,
        *,
        system_prompt: str | None = None,
    ) -> None:
        if self.requires_api_key and not config.api_key:
            raise ConfigurationError(
                f"API key not set for provider {config.provider!r}"
            )
        if not config.model:
            raise ConfigurationError(f"No model configured for provider {config.provider!r}")
        self._config = config
        self._registry = registry
        self._system_prompt = system_prompt
        self._counter = TokenCounter(config.model)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.provider

    @property
    def system_prompt(self) -> str:
        if self._system_prompt is not None:
            return self._system_prompt
        tools = self._registry.list() if self._registry and self.supports_tools else None
        return build_system_prompt(tools=tools)

    def tool_catalog(self) -> list[dict]:
        """The registry catalog in this provider's dialect (may be empty)."""
        if not self.supports_tools or self._registry is None or not len(self._registry):
            return []
        return self._tool_schema(self._registry)

    # ------------------------------------------------------------------
    # Public chat contract
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: list[Message],
        config_override: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """Single-shot completion.  Tool calls in the reply are executed and
        their results appended to the content, as in streaming mode."""
        cfg = self._config.merged(config_override)
        completion = await self._complete(messages, cfg)

        parts = [completion.content]
        for call in completion.tool_calls:
            parts.append(TOOL_NOTICE.format(name=call.invocation.name))
            parts.append(await self._execute_tool(call))

        usage = completion.usage or self._counter.estimate_usage(
            messages, self.system_prompt, completion.content
        )
        return ChatResponse(content="".join(parts), usage=usage)

    async def events(
        self,
        messages: list[Message],
        config_override: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Raw uniform stream events, before any tool handling."""
        cfg = self._config.merged(config_override)
        async with aclosing(self._stream_events(messages, cfg)) as events:
            async for event in events:
                yield event

    async def stream(
        self,
        messages: list[Message],
        config_override: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream the visible response as incremental text.

        Tool calls are executed as soon as their arguments are complete and
        the synthesized notice plus result are yielded in place.  Closing
        the generator (or cancelling the consuming task) releases the
        network connection; a tool already running is left to finish in the
        background and its result is discarded.
        """
        cfg = self._config.merged(config_override)
        assembler = ToolCallAssembler()
        tools = len(self.tool_catalog())
        logger.info(
            "Streaming chat: provider=%s model=%s messages=%d tools=%d",
            self.name, cfg.model, len(messages), tools,
        )

        async with aclosing(self._stream_events(messages, cfg)) as events:
            async for event in events:
                if isinstance(event, TextDelta):
                    if event.text:
                        yield event.text

                elif isinstance(event, ToolCallStart):
                    logger.debug("Tool call announced: %s (%s)", event.name, event.call_id)
                    assembler.start(event)

                elif isinstance(event, ToolCallArguments):
                    for call in assembler.feed(event):
                        yield TOOL_NOTICE.format(name=call.invocation.name)
                        yield await self._execute_tool(call)

                elif isinstance(event, Completed):
                    for call in assembler.flush():
                        yield TOOL_NOTICE.format(name=call.invocation.name)
                        yield await self._execute_tool(call)
                    return

                elif isinstance(event, Failed):
                    raise self._failure_error(event)

        raise StreamDecodeError("Stream ended without a completion event")

    async def chat_stream(
        self,
        messages: list[Message],
        on_chunk: ChunkCallback,
        config_override: dict[str, Any] | None = None,
    ) -> None:
        """
        Callback form of :meth:`stream`.

        *on_chunk* receives each text increment in arrival order; it may be a
        plain function or a coroutine function.
        """
        async with aclosing(self.stream(messages, config_override)) as chunks:
            async for text in chunks:
                result = on_chunk(text)
                if inspect.isawaitable(result):
                    await result

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def _execute_tool(self, call: AssembledCall) -> str:
        invocation = call.invocation
        if call.error:
            logger.warning("Tool call %s rejected: %s", invocation.id, call.error)
            return TOOL_FAILED.format(reason=call.error)
        if self._registry is None:
            return TOOL_FAILED.format(reason=UnknownTool(invocation.name))

        task = asyncio.ensure_future(self._registry.execute(invocation))
        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.info("Stream cancelled; tool %s continues in background", invocation.name)
            task.add_done_callback(_discard_result)
            raise
        except ToolError as exc:
            logger.warning("Tool %s failed: %s", invocation.name, exc)
            return TOOL_FAILED.format(reason=exc)

        if not result.success:
            logger.warning("Tool %s reported error: %s", invocation.name, result.error)
            return TOOL_FAILED.format(reason=result.error)
        return result.render()

    @staticmethod
    def _failure_error(event: Failed) -> ParleyError:
        if isinstance(event.error, ParleyError):
            return event.error
        return UpstreamError(None, event.reason, event.reason)

    # ------------------------------------------------------------------
    # Backend-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _stream_events(
        self, messages: list[Message], cfg: ProviderConfig
    ) -> AsyncIterator[StreamEvent]:
        """Issue the streaming request and yield decoded events."""
        ...

    @abstractmethod
    async def _complete(self, messages: list[Message], cfg: ProviderConfig) -> Completion:
        """Issue a single-shot request."""
        ...

    @abstractmethod
    def _tool_schema(self, registry: ToolRegistry) -> list[dict]:
        ...

    def _temperature(self, cfg: ProviderConfig) -> float:
        return cfg.temperature if cfg.temperature is not None else self.default_temperature

    def _max_tokens(self, cfg: ProviderConfig) -> int:
        return cfg.max_tokens or DEFAULT_MAX_TOKENS
