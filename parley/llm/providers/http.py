"""
Shared ``httpx`` plumbing for providers that speak plain HTTP.

Dependencies: ``httpx`` (async HTTP client).
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from parley.errors import (
    ConfigurationError,
    MalformedResponse,
    NetworkError,
    upstream_error_for,
)
from parley.llm.decoders.base import LineDecoder
from parley.llm.providers.base import Provider
from parley.llm.types import ProviderConfig, StreamEvent
from parley.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class HTTPProvider(Provider):
    """
    Base for providers issuing JSON requests over ``httpx``.

    Parameters
    ----------
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    """

    default_base_url: str = ""

    def __init__(
        self,
        config: ProviderConfig,
        registry: ToolRegistry | None = None,
        *,
        system_prompt: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(config, registry, system_prompt=system_prompt)
        base_url = config.base_url or self.default_base_url
        if not base_url:
            raise ConfigurationError(f"No base URL configured for provider {config.provider!r}")
        self._url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _post_json(self, url: str, body: dict, headers: dict[str, str]) -> dict:
        try:
            async with self._client() as client:
                resp = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out: {exc}", timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network error: {exc}") from exc

        if resp.status_code >= 400:
            raise upstream_error_for(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"Response is not JSON: {resp.text[:200]}") from exc
        if not isinstance(data, dict):
            raise MalformedResponse(f"Unexpected response shape: {resp.text[:200]}")
        return data

    async def _stream_request(
        self,
        url: str,
        body: dict,
        headers: dict[str, str],
        decoder: LineDecoder,
    ) -> AsyncIterator[StreamEvent]:
        """
        POST *body* and feed the response bytes through *decoder*.

        Stops reading (and releases the connection) as soon as the decoder
        reports a terminal event.
        """
        try:
            async with self._client() as client:
                async with client.stream("POST", url, json=body, headers=headers) as response:
                    if response.status_code >= 400:
                        raw = await response.aread()
                        raise upstream_error_for(
                            response.status_code, raw.decode("utf-8", errors="replace")
                        )

                    async for raw_bytes in response.aiter_bytes():
                        for event in decoder.feed(raw_bytes):
                            yield event
                        if decoder.terminated:
                            return

                    for event in decoder.finish():
                        yield event
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Stream timed out: {exc}", timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network error during stream: {exc}") from exc

    def _log_request(self, url: str, body: dict) -> None:
        logger.info(
            "REQUEST: provider=%s url=%s model=%s tools=%d messages=%d api_key=%s",
            self.name,
            url,
            body.get("model"),
            len(body.get("tools") or []),
            len(body.get("messages") or []),
            f"{self._config.api_key[:6]}..." if self._config.api_key else "(none)",
        )
