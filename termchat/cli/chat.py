"""Interactive chat session handler."""

from __future__ import annotations

import asyncio

from rich.console import Console

from termchat.cli.output import OutputFormatter
from termchat.errors import SessionStoppedError
from termchat.session.actor import SessionActor
from termchat.session.events import (
    EVENT_ERROR,
    EVENT_STREAM_CHUNK,
    EVENT_STREAM_END,
    EVENT_TOOL_RESULT,
    EVENT_TOOL_USAGE,
    ROLE_THINKING,
)
from termchat.tools.registry import ToolRegistry


class ChatHandler:
    """
    Manages the interactive chat loop.

    Renders the actor's downstream events as they arrive and handles
    inline slash commands.
    """

    def __init__(
        self,
        actor: SessionActor,
        tools: ToolRegistry,
        console: Console | None = None,
    ) -> None:
        self.actor = actor
        self.tools = tools
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self._running = True

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        cmd = command.strip().split(None, 1)[0].lower()

        if cmd == "/quit":
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/history":
            self.formatter.format_history(await self.actor.get_history())
            return True

        if cmd == "/tools":
            self.formatter.format_tool_list(self.tools.list())
            return True

        if cmd == "/clear":
            removed = await self.actor.clear_history()
            self.console.print(f"  Cleared {removed} messages.")
            return True

        if cmd == "/stop":
            await self.actor.stop()
            self.console.print("  AI stopped. Use /resume to continue.")
            return True

        if cmd == "/resume":
            await self.actor.resume()
            self.console.print("  AI resumed.")
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  /quit     - Exit the chat\n"
                "  /history  - Show conversation history\n"
                "  /tools    - List available tools\n"
                "  /clear    - Clear history (system prompt is kept)\n"
                "  /stop     - Stop accepting new messages\n"
                "  /resume   - Resume after /stop\n"
                "  /help     - Show this help\n"
            )
            return True

        return False

    async def handle_input(self, user_input: str) -> None:
        """Submit user input and stream the turn's events."""
        try:
            turn = await self.actor.submit(user_input)
        except SessionStoppedError as e:
            self.console.print(f"[yellow]{e}[/yellow]")
            return

        self.console.print("[dim]assistant>[/dim] ", end="")
        async for event in turn:
            etype = event.get("type")
            if etype == EVENT_STREAM_CHUNK:
                style = "dim italic" if event.get("role") == ROLE_THINKING else None
                self.console.print(event["content"], end="", markup=False, style=style)
            elif etype == EVENT_TOOL_USAGE:
                self.formatter.format_tool_usage(event)
            elif etype == EVENT_TOOL_RESULT:
                self.formatter.format_tool_result(event)
            elif etype == EVENT_STREAM_END and event.get("reason") != "tool_calls":
                self.console.print()
            elif etype == EVENT_ERROR:
                self.console.print(f"\n[red]Error:[/red] {event.get('content', '')}")

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            "[bold]termchat[/bold] - Terminal AI Assistant\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        loop = asyncio.get_running_loop()
        while self._running:
            try:
                user_input = await loop.run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            await self.handle_input(user_input)
