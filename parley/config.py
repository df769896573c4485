"""
parley configuration.

Values are layered, later sources winning::

    built-in defaults < YAML file < PARLEY_* environment < CLI options

The core never reads the environment itself; :meth:`ParleyConfig.provider_config`
resolves the credential here and hands adapters an immutable
:class:`~parley.llm.types.ProviderConfig`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from parley.errors import ConfigurationError
from parley.llm.factory import defaults_for
from parley.llm.types import ProviderConfig

DEFAULT_CONFIG_PATH = "~/.parley/config.yaml"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass
class LLMSection:
    """Empty ``model`` or ``api_key_env`` take the provider's defaults."""

    provider: str = "openai"
    model: str = ""
    base_url: str = ""
    api_key_env: str = ""
    max_tokens: int = 4_096
    temperature: float | None = None
    timeout_seconds: int = 120

    def with_provider_defaults(self) -> LLMSection:
        defaults = defaults_for(self.provider)
        if defaults is None:
            return self
        return replace(
            self,
            model=self.model or defaults.model,
            api_key_env=self.api_key_env or defaults.api_key_env,
        )


@dataclass
class ChatSection:
    history_limit: int = 20
    system_prompt: str = ""


@dataclass
class PluginsConfig:
    """Which ``parley.tools`` entry points may register tools."""

    enabled: bool = False
    allow_distributions: list[str] = field(default_factory=list)
    allow_tools: list[str] = field(default_factory=list)


_SECTIONS: dict[str, type] = {
    "llm": LLMSection,
    "chat": ChatSection,
    "plugins": PluginsConfig,
}


@dataclass
class ParleyConfig:
    llm: LLMSection = field(default_factory=LLMSection)
    chat: ChatSection = field(default_factory=ChatSection)
    plugins: PluginsConfig = field(default_factory=PluginsConfig)

    def to_dict(self) -> dict:
        return asdict(self)

    def provider_config(self, environ: Mapping[str, str] | None = None) -> ProviderConfig:
        """
        Resolve the credential and return the immutable adapter config.

        The key is read from the variable named by ``llm.api_key_env``, or
        by the provider's default variable when that is empty. An unset
        variable gives an empty key, which adapters that need one reject
        when they are constructed.
        """
        env = os.environ if environ is None else environ
        llm = self.llm.with_provider_defaults()
        return ProviderConfig(
            provider=llm.provider,
            api_key=env.get(llm.api_key_env, "") if llm.api_key_env else "",
            model=llm.model,
            base_url=llm.base_url or None,
            max_tokens=llm.max_tokens,
            temperature=llm.temperature,
        )


# environment variable -> (section, attribute, parser)
_ENV_MAP: dict[str, tuple[str, str, type]] = {
    "PARLEY_LLM_PROVIDER": ("llm", "provider", str),
    "PARLEY_LLM_MODEL": ("llm", "model", str),
    "PARLEY_LLM_BASE_URL": ("llm", "base_url", str),
    "PARLEY_LLM_API_KEY_ENV": ("llm", "api_key_env", str),
    "PARLEY_LLM_MAX_TOKENS": ("llm", "max_tokens", int),
    "PARLEY_LLM_TEMPERATURE": ("llm", "temperature", float),
    "PARLEY_LLM_TIMEOUT": ("llm", "timeout_seconds", int),
    "PARLEY_CHAT_HISTORY_LIMIT": ("chat", "history_limit", int),
    "PARLEY_CHAT_SYSTEM_PROMPT": ("chat", "system_prompt", str),
    "PARLEY_PLUGINS_ENABLED": ("plugins", "enabled", bool),
    "PARLEY_PLUGINS_ALLOW_DIST": ("plugins", "allow_distributions", list),
    "PARLEY_PLUGINS_ALLOW_TOOLS": ("plugins", "allow_tools", list),
}


def _parse_env(name: str, value: str, kind: type) -> Any:
    if kind is bool:
        return value.strip().lower() in _TRUTHY
    if kind is list:
        return [item.strip() for item in value.split(",") if item.strip()]
    if kind in (int, float):
        try:
            return kind(value)
        except ValueError:
            raise ConfigurationError(
                f"{name}={value!r} is not a valid {kind.__name__}"
            ) from None
    return value


def _set(cfg: ParleyConfig, section: str, key: str, value: Any) -> None:
    target = getattr(cfg, section) if section in _SECTIONS else None
    if target is None or key not in {f.name for f in fields(target)}:
        raise ConfigurationError(f"Unknown config key: {section}.{key}")
    setattr(target, key, value)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _section_from(name: str, raw: Any) -> Any:
    cls = _SECTIONS[name]
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    # Unknown keys are ignored.
    return cls(**{k: v for k, v in raw.items() if k in known})


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ParleyConfig:
    """
    Assemble a :class:`ParleyConfig` from all sources.

    ``config_path`` may point at a missing file, which is skipped.
    ``cli_overrides`` maps ``"section.key"`` to a value; ``None`` values mean
    the option was not given.
    """
    env = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path).expanduser()
        if path.is_file():
            data = _read_yaml(path)

    cfg = ParleyConfig(**{name: _section_from(name, data.get(name)) for name in _SECTIONS})

    for var, (section, key, kind) in _ENV_MAP.items():
        if var in env:
            _set(cfg, section, key, _parse_env(var, env[var], kind))

    for dotted, value in (cli_overrides or {}).items():
        if value is None:
            continue
        section, _, key = dotted.partition(".")
        _set(cfg, section, key, value)

    cfg.llm = cfg.llm.with_provider_defaults()
    return cfg
