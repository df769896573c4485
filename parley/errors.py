"""
Error taxonomy.

Every exception raised by parley derives from :class:`ParleyError` so callers
can catch the whole family in one place, while the subclasses stay specific
enough to render an actionable message (bad credential vs. network trouble
vs. a generic upstream failure).
"""

from __future__ import annotations


class ParleyError(Exception):
    """Base class for all parley errors."""


class ConfigurationError(ParleyError):
    """Missing or invalid configuration, detected before any network call."""


class UnsupportedProvider(ParleyError):
    """No construction rule is registered for the requested provider id."""

    def __init__(self, provider: str, known: list[str] | None = None) -> None:
        message = f"Unsupported AI provider: {provider!r}"
        if known:
            message += f" (known: {', '.join(sorted(known))})"
        super().__init__(message)
        self.provider = provider


# ---------------------------------------------------------------------------
# Upstream / transport
# ---------------------------------------------------------------------------


class UpstreamError(ParleyError):
    """Non-success response from a provider."""

    def __init__(
        self,
        status_code: int | None,
        body: str = "",
        message: str | None = None,
    ) -> None:
        super().__init__(message or f"Upstream error (HTTP {status_code}): {body[:200]}")
        self.status_code = status_code
        self.body = body


class AuthenticationError(UpstreamError):
    """The provider rejected the credential (HTTP 401/403)."""


class RateLimitError(UpstreamError):
    """The provider is throttling requests (HTTP 429)."""


class NetworkError(UpstreamError):
    """Connection failure or timeout; no HTTP status was received."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(None, "", message)
        self.timed_out = timed_out


def upstream_error_for(status_code: int, body: str) -> UpstreamError:
    """Pick the most specific ``UpstreamError`` subclass for *status_code*."""
    if status_code in (401, 403):
        return AuthenticationError(
            status_code, body, f"Invalid or unauthorized API key (HTTP {status_code})"
        )
    if status_code == 429:
        return RateLimitError(status_code, body, "Rate limited by provider (HTTP 429)")
    return UpstreamError(status_code, body)


class MalformedResponse(ParleyError):
    """A success response could not be parsed into chat content."""


class StreamDecodeError(ParleyError):
    """The streaming wire format was violated."""


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolError(ParleyError):
    """Base class for registry-level tool failures."""

    def __init__(self, message: str, tool_name: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class UnknownTool(ToolError):
    """No handler is registered under the requested name."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool {tool_name} not found", tool_name)


class ToolExecutionFailed(ToolError):
    """The tool handler raised, or could not be invoked."""

    def __init__(self, tool_name: str, cause: BaseException | str) -> None:
        super().__init__(f"Tool execution failed: {cause}", tool_name)
        self.cause = cause


class InvalidToolArguments(ToolExecutionFailed):
    """The arguments did not match the tool's parameter schema."""
