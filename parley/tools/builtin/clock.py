"""Current-time tool."""

from __future__ import annotations

import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from parley.tools.base import ToolDeclaration, ToolInvocationResult
from parley.tools.registry import ToolRegistry

_TIMEZONE_ALIASES = {
    "eastern": "America/New_York",
    "central": "America/Chicago",
    "mountain": "America/Denver",
    "pacific": "America/Los_Angeles",
    "beijing": "Asia/Shanghai",
    "china": "Asia/Shanghai",
    "london": "Europe/London",
    "uk": "Europe/London",
}

CLOCK_TOOL = ToolDeclaration(
    name="get_current_time",
    description=(
        "Get the current date and time in a timezone. Use this when the user "
        "asks what time or day it is somewhere."
    ),
    parameters={
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": "IANA timezone, e.g. Asia/Shanghai or Europe/London. Defaults to UTC.",
            },
        },
        "required": [],
    },
)


async def current_time(args: dict) -> ToolInvocationResult:
    name = args.get("timezone") or "UTC"
    name = _TIMEZONE_ALIASES.get(name.lower(), name)
    try:
        now = datetime.datetime.now(ZoneInfo(name))
    except (ZoneInfoNotFoundError, ValueError):
        return ToolInvocationResult(error=f"Unknown timezone: {name}")
    return ToolInvocationResult(
        payload={"timezone": name, "time": now.isoformat()},
        summary=now.strftime(f"It is %H:%M on %A, %B %d, %Y ({name})."),
    )


def register(registry: ToolRegistry) -> None:
    registry.register(CLOCK_TOOL, current_time)
