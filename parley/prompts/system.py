"""System prompt builder."""

from __future__ import annotations

from parley.tools.base import ToolDeclaration

ASSISTANT_INTRO = (
    "You are a friendly travel assistant that helps users plan trips. "
    "You can suggest itineraries, look up weather and transport, and prepare "
    "packing lists. Answers should be concrete and practical."
)


def build_system_prompt(
    context: dict | None = None,
    tools: list[ToolDeclaration] | None = None,
    extra_sections: list[str] | None = None,
) -> str:
    """
    Build the default system prompt.

    *context* may carry ``destination``, ``start_date`` and ``days``; unset
    values are rendered as "not set" so the model knows to ask.
    """
    context = context or {}
    sections: list[str] = [ASSISTANT_INTRO]

    sections.append(
        "Current context:\n"
        f"- Destination: {context.get('destination') or 'not set'}\n"
        f"- Start date: {context.get('start_date') or 'not set'}\n"
        f"- Trip length (days): {context.get('days') or 'not set'}"
    )

    if tools:
        tool_lines = [f"- **{t.name}**: {t.description}" for t in tools]
        sections.append(
            "## Available Tools\n\n"
            + "\n".join(tool_lines)
            + "\n\nCall a tool when it can answer the request directly."
        )

    if extra_sections:
        sections.extend(extra_sections)

    return "\n\n".join(sections)
