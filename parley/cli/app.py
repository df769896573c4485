"""
Main CLI application for parley.

Usage:
    parley chat PROMPT [--provider ID] [--model NAME] [--base-url URL] [--no-stream]
    parley tools list|info
    parley providers
    parley config show|validate
    parley version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from parley import __version__
from parley.config import DEFAULT_CONFIG_PATH, ParleyConfig, load_config
from parley.errors import ParleyError

app = typer.Typer(name="parley", help="Parley - streaming chat with tool calling")
tools_app = typer.Typer(help="Inspect the tool catalog")
config_app = typer.Typer(help="Inspect the effective configuration")

for name, sub in (("tools", tools_app), ("config", config_app)):
    app.add_typer(sub, name=name)

console = Console()
err_console = Console(stderr=True)


def _get_config_path() -> Path | None:
    """First existing parley.yaml in the working directory or user config dirs."""
    search = (
        Path("parley.yaml"),
        Path("parley.yml"),
        Path("~/.config/parley/config.yaml"),
        Path(DEFAULT_CONFIG_PATH),
    )
    return next((p.expanduser() for p in search if p.expanduser().is_file()), None)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def _build_registry(cfg: ParleyConfig):
    from parley.tools.builtin import register_builtin_tools
    from parley.tools.registry import ToolRegistry

    registry = ToolRegistry()
    register_builtin_tools(registry)
    plugins = cfg.plugins
    registry.load_plugins(
        enabled=plugins.enabled,
        allow_distributions=set(plugins.allow_distributions) or None,
        allow_tools=set(plugins.allow_tools) or None,
    )
    return registry


async def _run_chat(cfg: ParleyConfig, prompt: str, stream: bool) -> None:
    from parley.cli.output import OutputFormatter
    from parley.llm.factory import ProviderFactory
    from parley.llm.types import Message

    registry = _build_registry(cfg)
    factory = ProviderFactory(registry, system_prompt=cfg.chat.system_prompt or None)
    provider = factory.get_or_create(cfg.provider_config())
    messages = [Message(role="user", content=prompt)]

    if stream:
        await provider.chat_stream(
            messages,
            lambda text: console.print(text, end="", markup=False, highlight=False),
        )
        console.print()
    else:
        response = await provider.chat(messages)
        console.print(response.content, markup=False, highlight=False)
        OutputFormatter(console).format_usage(response.usage)


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="Message to send"),
    provider: Optional[str] = typer.Option(None, help="LLM provider id"),
    model: Optional[str] = typer.Option(None, help="Model name"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override the API base URL"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Wait for the full reply"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Send one message and print the reply."""
    _setup_logging(verbose)
    try:
        cfg = load_config(
            _get_config_path(),
            cli_overrides={
                "llm.provider": provider,
                "llm.model": model,
                "llm.base_url": base_url,
            },
        )
        asyncio.run(_run_chat(cfg, prompt, stream=not no_stream))
    except ParleyError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@tools_app.command("list")
def tools_list():
    """Print the tools a chat would advertise."""
    from parley.cli.output import OutputFormatter

    registry = _build_registry(load_config(_get_config_path()))
    OutputFormatter(console).format_tool_list(registry.list())


@tools_app.command("info")
def tools_info(name: str = typer.Argument(..., help="Tool name")):
    """Print one tool declaration with its argument schema."""
    from parley.cli.output import OutputFormatter

    registry = _build_registry(load_config(_get_config_path()))
    declaration = registry.get(name)
    if declaration is None:
        err_console.print(f"[red]No tool named {name!r}[/red]")
        raise typer.Exit(1)

    OutputFormatter(console).format_tool_info(declaration)


@app.command()
def providers():
    """List provider ids with their key variable and models (default in bold)."""
    from parley.cli.output import OutputFormatter
    from parley.llm.factory import PROVIDER_DEFAULTS, ProviderFactory

    cfg = load_config(_get_config_path())
    OutputFormatter(console).format_provider_list(
        ProviderFactory().provider_ids, PROVIDER_DEFAULTS, active=cfg.llm.provider
    )


@config_app.command("show")
def config_show():
    """Print the merged configuration (file, environment, defaults)."""
    from parley.cli.output import OutputFormatter

    OutputFormatter(console).format_config(load_config(_get_config_path()).to_dict())


@config_app.command("validate")
def config_validate():
    """Load the configuration and report problems, if any."""
    path = _get_config_path()
    try:
        cfg = load_config(path)
        pc = cfg.provider_config()
    except ParleyError as e:
        err_console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)

    source = str(path) if path else "built-in defaults"
    console.print(f"[green]OK[/green] ({source})")
    console.print(f"  provider  {pc.provider} / {pc.model}")
    if not pc.api_key and cfg.llm.api_key_env:
        console.print(f"  [yellow]{cfg.llm.api_key_env} is not set[/yellow]")


@app.command()
def version():
    """Show version."""
    console.print(f"parley v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
