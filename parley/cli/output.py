"""Rich rendering for parley CLI commands."""

from __future__ import annotations

import json

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from parley.llm.factory import ProviderDefaults
from parley.llm.types import Usage
from parley.tools.base import ToolDeclaration


class OutputFormatter:
    """Renders catalogs, config and usage to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_tool_list(self, tools: list[ToolDeclaration]) -> None:
        if not tools:
            self.console.print("[dim]No tools registered.[/dim]")
            return

        table = Table(title="Tool catalog", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Required", no_wrap=True)
        table.add_column("Description")

        for t in tools:
            table.add_row(t.name, ", ".join(t.required) or "-", t.description)

        self.console.print(table)

    def format_tool_info(self, tool: ToolDeclaration) -> None:
        required = ", ".join(tool.required) or "none"
        self.console.print(Panel(
            f"{tool.description}\n\n[dim]required:[/dim] {required}",
            title=tool.name,
        ))
        self._print_json(tool.parameters)

    def format_provider_list(
        self,
        provider_ids: list[str],
        defaults: dict[str, ProviderDefaults],
        active: str | None = None,
    ) -> None:
        table = Table(title="Providers", show_lines=True)
        table.add_column("Id", style="cyan", no_wrap=True)
        table.add_column("Key variable", no_wrap=True)
        table.add_column("Models")
        table.add_column("Configured", no_wrap=True)

        for pid in provider_ids:
            d = defaults.get(pid)
            if d is None:
                key_env, models = "?", "-"
            else:
                key_env = d.api_key_env or "(none)"
                models = ", ".join(
                    f"[bold]{m}[/bold]" if m == d.model else m for m in d.models
                )
            table.add_row(pid, key_env, models, "[green]yes[/green]" if pid == active else "")

        self.console.print(table)

    def format_config(self, config: dict) -> None:
        self._print_json(config)

    def _print_json(self, data: dict) -> None:
        text = json.dumps(data, indent=2, default=str)
        self.console.print(Syntax(text, "json", theme="ansi_dark"))

    def format_usage(self, usage: Usage | None) -> None:
        if usage is None:
            return
        self.console.print(
            f"[dim]tokens: in={usage.input_tokens} out={usage.output_tokens} "
            f"total={usage.total_tokens}[/dim]"
        )
