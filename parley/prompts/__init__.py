from parley.prompts.intent import Intent, build_intent_prompt, parse_intent_reply
from parley.prompts.system import build_system_prompt

__all__ = ["Intent", "build_intent_prompt", "build_system_prompt", "parse_intent_reply"]
