"""
Provider factory -- maps provider ids to adapter constructors and keeps the
most recently built adapter around for reuse.

The factory holds exactly one adapter.  It is reused as long as the
provider id, credential and endpoint stay the same; any change to those
builds a fresh adapter that replaces the cached one.  Per-call tweaks such
as a different model go through ``config_override`` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable

from parley.errors import UnsupportedProvider
from parley.llm.providers.anthropic import AnthropicProvider
from parley.llm.providers.base import Provider
from parley.llm.providers.ollama import OllamaProvider
from parley.llm.providers.openai_compat import OpenAICompatProvider
from parley.llm.types import ProviderConfig
from parley.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

ProviderConstructor = Callable[..., Provider]

OPENAI_COMPAT_ENDPOINTS: dict[str, dict] = {
    "openai": {
        "default_base_url": "https://api.openai.com/v1",
        "default_temperature": 1.0,
    },
    "deepseek": {"default_base_url": "https://api.deepseek.com/v1"},
    "zhipu": {"default_base_url": "https://open.bigmodel.cn/api/paas/v4"},
    "doubao": {
        "default_base_url": "https://ark.cn-beijing.volces.com/api/v3",
        "extra_body": {"top_p": 0.9, "frequency_penalty": 0.1, "presence_penalty": 0.1},
    },
    "openrouter": {"default_base_url": "https://openrouter.ai/api/v1"},
    "google": {
        "default_base_url": "https://generativelanguage.googleapis.com/v1beta/openai",
    },
}


@dataclass(frozen=True)
class ProviderDefaults:
    """What a built-in provider uses when the config leaves it unset."""

    model: str
    api_key_env: str
    models: tuple[str, ...] = ()


# An empty api_key_env means the provider takes no credential.
PROVIDER_DEFAULTS: dict[str, ProviderDefaults] = {
    "openai": ProviderDefaults(
        "gpt-4o", "OPENAI_API_KEY",
        ("gpt-4o", "gpt-4-turbo-preview", "gpt-4", "gpt-3.5-turbo"),
    ),
    "anthropic": ProviderDefaults(
        "claude-3-5-sonnet-20241022", "ANTHROPIC_API_KEY",
        ("claude-3-5-sonnet-20241022", "claude-3-opus-20240229", "claude-3-haiku-20240307"),
    ),
    "google": ProviderDefaults("gemini-pro", "GOOGLE_API_KEY", ("gemini-pro",)),
    "deepseek": ProviderDefaults("deepseek-chat", "DEEPSEEK_API_KEY", ("deepseek-chat",)),
    "zhipu": ProviderDefaults("glm-4", "ZHIPU_API_KEY", ("glm-4", "glm-3-turbo")),
    "doubao": ProviderDefaults(
        "doubao-seed-1-6-251015", "DOUBAO_API_KEY", ("doubao-seed-1-6-251015",)
    ),
    "openrouter": ProviderDefaults(
        "openai/gpt-3.5-turbo", "OPENROUTER_API_KEY", ("openai/gpt-3.5-turbo",)
    ),
    "ollama": ProviderDefaults("llama3", "", ("llama3", "qwen2", "mistral")),
}


def defaults_for(provider_id: str) -> ProviderDefaults | None:
    return PROVIDER_DEFAULTS.get(provider_id)


def builtin_constructors() -> dict[str, ProviderConstructor]:
    """The constructors available without any registration."""
    constructors: dict[str, ProviderConstructor] = {
        provider_id: partial(OpenAICompatProvider, **defaults)
        for provider_id, defaults in OPENAI_COMPAT_ENDPOINTS.items()
    }
    constructors["ollama"] = OllamaProvider
    constructors["anthropic"] = AnthropicProvider
    return constructors


class ProviderFactory:
    """
    Builds and caches provider adapters.

    Parameters
    ----------
    registry:
        Tool registry handed to every adapter the factory builds.
    system_prompt:
        Optional system prompt override handed to every adapter.
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        *,
        system_prompt: str | None = None,
    ) -> None:
        self._registry = registry
        self._system_prompt = system_prompt
        self._constructors = builtin_constructors()
        self._current: Provider | None = None

    @property
    def provider_ids(self) -> list[str]:
        return sorted(self._constructors)

    def register(self, provider_id: str, constructor: ProviderConstructor) -> None:
        """
        Make *provider_id* available.  An existing id is replaced.

        *constructor* is called as ``constructor(config, registry,
        system_prompt=...)`` and must return a :class:`Provider`.
        """
        if provider_id in self._constructors:
            logger.info("Replacing provider constructor: %s", provider_id)
        self._constructors[provider_id] = constructor

    def get_or_create(self, config: ProviderConfig) -> Provider:
        """
        Return the cached adapter when *config* matches it, else build one.

        Only ``config.cache_key`` is compared.  A reused adapter keeps the
        model it was built with; pass a different model per call through
        ``config_override``.
        """
        current = self._current
        if current is not None and current.config.cache_key == config.cache_key:
            if current.config.model != config.model:
                logger.info(
                    "Reusing %s adapter bound to model %s (requested %s); "
                    "use config_override to change the model per call",
                    config.provider, current.config.model, config.model,
                )
            else:
                logger.debug("Reusing %s adapter", config.provider)
            return current

        constructor = self._constructors.get(config.provider)
        if constructor is None:
            raise UnsupportedProvider(config.provider, self.provider_ids)

        provider = constructor(config, self._registry, system_prompt=self._system_prompt)
        logger.info("Created %s adapter for model %s", config.provider, config.model)
        self._current = provider
        return provider

    def current(self) -> Provider | None:
        return self._current

    def clear(self) -> None:
        """Drop the cached adapter."""
        self._current = None
