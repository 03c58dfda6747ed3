"""
Main CLI application for termchat.

Usage:
    termchat serve [--host HOST] [--port PORT] [--profile NAME]
    termchat chat [--profile NAME] [--model NAME]
    termchat tools list
    termchat config show|validate
    termchat version
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console

from termchat import __version__
from termchat.config import TermchatConfig, load_config
from termchat.runtime import get_config_path

app = typer.Typer(name="termchat", help="termchat - streaming terminal AI assistant")
tools_app = typer.Typer(help="Tool management")
config_app = typer.Typer(help="Configuration management")

app.add_typer(tools_app, name="tools")
app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load(profile: str | None = None, **overrides) -> TermchatConfig:
    cfg = load_config(get_config_path(), profile=profile, cli_overrides=overrides)
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return cfg


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Run the websocket chat server."""
    from termchat.runtime import Runtime
    from termchat.server.app import run_server

    cfg = _load(profile, **{"server.host": host, "server.port": port})
    runtime = Runtime(cfg)
    console.print(
        f"termchat v{__version__} serving on "
        f"http://{cfg.server.host}:{cfg.server.port} ({cfg.llm.provider}: {cfg.llm.model})"
    )
    run_server(runtime)


@app.command()
def chat(
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    model: Optional[str] = typer.Option(None, help="Model override"),
):
    """Start an interactive chat session in this terminal."""
    from termchat.cli.chat import ChatHandler
    from termchat.runtime import Runtime
    from termchat.session.registry import new_session_id

    cfg = _load(profile, **{"llm.model": model})

    async def _run():
        runtime = Runtime(cfg)
        session_id = new_session_id()
        actor = runtime.new_actor(session_id)
        await runtime.sessions.create(session_id, actor)
        handler = ChatHandler(actor, runtime.tools, console=console)
        try:
            await handler.run_loop()
        finally:
            await runtime.sessions.close_all()

    asyncio.run(_run())


@tools_app.command("list")
def tools_list():
    """List registered tools."""
    from termchat.cli.output import OutputFormatter
    from termchat.llm.router import LLMRouter
    from termchat.runtime import Runtime

    cfg = load_config(get_config_path())
    runtime = Runtime(cfg, router=LLMRouter())
    OutputFormatter(console).format_tool_list(runtime.tools.list())


@config_app.command("show")
def config_show():
    """Show effective config."""
    from termchat.cli.output import OutputFormatter

    cfg = load_config(get_config_path())
    OutputFormatter(console).format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and show the resolved provider."""
    config_path = get_config_path()
    try:
        cfg = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)

    console.print("[green]Config is valid.[/green]")
    if config_path:
        console.print(f"  Loaded from: {config_path}")
    else:
        console.print("  [dim]No config file found, using defaults.[/dim]")
    console.print(f"  LLM provider: {cfg.llm.provider} ({cfg.llm.model})")
    console.print(f"  API base: {cfg.llm.api_base}")
    console.print(f"  Max tool rounds: {cfg.session.max_continuations}")
    console.print(f"  Plugins enabled: {cfg.plugins.enabled}")
    if not cfg.llm.api_base:
        console.print("[red]No API base configured for the provider.[/red]")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version."""
    console.print(f"termchat v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
