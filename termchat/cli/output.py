"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from termchat.llm.types import Message
from termchat.session.events import SessionEvent
from termchat.tools.base import Tool

ROLE_COLORS = {
    "system": "dim",
    "user": "blue",
    "assistant": "green",
    "tool": "cyan",
}


class OutputFormatter:
    """Rich-based output formatting for the termchat CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_tool_list(self, tools: list[Tool]) -> None:
        table = Table(title="Registered Tools", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Parameters", no_wrap=True)
        table.add_column("Description")

        for t in tools:
            params = ", ".join(sorted((t.parameters or {}).get("properties", {})))
            table.add_row(t.name, params or "-", t.description)

        self.console.print(table)

    def format_history(self, messages: list[Message]) -> None:
        if not messages:
            self.console.print("[dim]No messages.[/dim]")
            return

        for i, m in enumerate(messages):
            color = ROLE_COLORS.get(m.role, "white")
            content = m.content.replace("\n", " ")[:100]
            if m.tool_calls:
                names = ", ".join(tc.name for tc in m.tool_calls)
                content = f"{content} [calls: {names}]".strip()
            self.console.print(f"  [{color}]{i:>3} {m.role:>9s}[/{color}]  {content}")

    def format_tool_usage(self, event: SessionEvent) -> None:
        self.console.print(f"\n  [yellow]> {event.get('content', '')}[/yellow]")

    def format_tool_result(self, event: SessionEvent) -> None:
        result: dict[str, Any] = event.get("result", {})
        name = event.get("tool_name", "?")
        if result.get("success"):
            self.console.print(f"  [{name}] [green]OK[/green]")
        else:
            self.console.print(f"  [{name}] [red]FAILED[/red]: {result.get('error', '')}")

    def format_config(self, config: dict) -> None:
        config_json = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(config_json, "json", theme="monokai"))
