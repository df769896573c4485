from parley.llm.providers.anthropic import AnthropicProvider
from parley.llm.providers.base import Completion, Provider, TOOL_FAILED, TOOL_NOTICE
from parley.llm.providers.http import HTTPProvider
from parley.llm.providers.ollama import OllamaProvider
from parley.llm.providers.openai_compat import OpenAICompatProvider

__all__ = [
    "AnthropicProvider",
    "Completion",
    "HTTPProvider",
    "OllamaProvider",
    "OpenAICompatProvider",
    "Provider",
    "TOOL_FAILED",
    "TOOL_NOTICE",
]
