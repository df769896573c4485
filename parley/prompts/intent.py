"""Intent detection prompt and reply parsing."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from parley.errors import MalformedResponse

DEFAULT_INTENTS = ("guide", "flight", "weather", "trip", "chat")
FALLBACK_INTENT = "chat"
ENTITY_KEYS = ("destination", "date", "days")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class Intent:
    name: str
    entities: dict[str, str] = field(default_factory=dict)


def build_intent_prompt(user_message: str, intents: tuple[str, ...] = DEFAULT_INTENTS) -> str:
    """Ask the model to classify *user_message* and extract trip entities as JSON."""
    entities = ",\n".join(f'    "{key}": "..."' for key in ENTITY_KEYS)
    return (
        "Classify the intent of the user message and extract key entities.\n"
        f'Message: "{user_message}"\n\n'
        "Reply with JSON only, in this shape:\n"
        "{\n"
        f'  "intent": "{"|".join(intents)}",\n'
        '  "entities": {\n'
        f"{entities}\n"
        "  }\n"
        "}\n"
        "Leave out entities the message does not mention."
    )


def parse_intent_reply(reply: str, intents: tuple[str, ...] = DEFAULT_INTENTS) -> Intent:
    """
    Parse a reply to :func:`build_intent_prompt`.

    Surrounding prose or code fences are ignored.  An intent outside
    *intents* becomes ``"chat"``; empty entity values are dropped.  Raises
    :class:`MalformedResponse` when the reply holds no JSON object.
    """
    match = _JSON_OBJECT.search(reply)
    if match is None:
        raise MalformedResponse(f"No JSON object in intent reply: {reply[:80]!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Intent reply is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponse("Intent reply must be a JSON object")

    name = data.get("intent")
    if name not in intents:
        name = FALLBACK_INTENT

    raw_entities = data.get("entities")
    entities = {
        str(k): str(v)
        for k, v in (raw_entities.items() if isinstance(raw_entities, dict) else ())
        if v not in (None, "")
    }
    return Intent(name=name, entities=entities)
