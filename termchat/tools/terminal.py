"""
Terminal tools.

These talk to the terminal attached to the chat through a
``TerminalProvider``.  A chat without an attached terminal gets a structured
error from every tool that needs one.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime

from termchat.backends.base import CollaboratorError, TerminalEntry, TerminalProvider
from termchat.tools.base import Tool, ToolContext, ToolName
from termchat.types import ErrorCode, ToolResult

NO_TERMINAL_MESSAGE = "No terminal session associated with this chat"

_POLL_INTERVAL = 0.05
_SNAPSHOT_LINES = 20

_EntryKey = tuple[str, str, datetime]


def _format_entries(entries: list[TerminalEntry]) -> list[dict[str, str]]:
    return [e.to_dict() for e in entries]


def _last_entry_key(entries: list[TerminalEntry]) -> _EntryKey | None:
    if not entries:
        return None
    last = entries[-1]
    return (last.type, last.content, last.timestamp)


def _no_terminal() -> ToolResult:
    return ToolResult.fail(NO_TERMINAL_MESSAGE, ErrorCode.COLLABORATOR_ERROR)


class _TerminalTool(Tool):
    def __init__(self, terminal: TerminalProvider | None = None) -> None:
        self._terminal = terminal

    def _session(self, context: ToolContext) -> str | None:
        if self._terminal is None:
            return None
        return context.terminal_session_id


class ReadTerminalTool(_TerminalTool):
    @property
    def name(self) -> str:
        return ToolName.READ_TERMINAL.value

    @property
    def description(self) -> str:
        return (
            "Read recent terminal output and commands from the terminal attached "
            "to this chat."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "lines": {
                    "type": "integer",
                    "description": "Number of recent output lines to read (default: 20, max: 100)",
                },
            },
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        session_id = self._session(context)
        if session_id is None:
            return _no_terminal()
        lines = max(1, min(int(kwargs.get("lines", 20)), 100))
        try:
            entries = await self._terminal.read(session_id, lines)
        except CollaboratorError as e:
            return ToolResult.fail(str(e), ErrorCode.COLLABORATOR_ERROR)
        return ToolResult.ok(
            terminal_output=_format_entries(entries),
            entry_count=len(entries),
            note="Recent terminal output and commands",
        )


class SendToTerminalTool(_TerminalTool):
    @property
    def name(self) -> str:
        return ToolName.SEND_TO_TERMINAL.value

    @property
    def description(self) -> str:
        return (
            "Send a command or input directly to the terminal. By default, waits "
            "for the output to settle and returns it."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "input": {
                    "type": "string",
                    "description": "The command or text to send to the terminal",
                },
                "command": {
                    "type": "string",
                    "description": "Alias for input",
                },
                "add_newline": {
                    "type": "boolean",
                    "description": "Whether to add a newline (Enter) after the input (default: true)",
                },
                "auto_read": {
                    "type": "boolean",
                    "description": "Whether to wait and read terminal output after sending (default: true)",
                },
                "sleep_seconds": {
                    "type": "number",
                    "description": "How long to wait for output when auto_read is true (default: 1.5 seconds)",
                },
            },
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        text = kwargs.get("input") or kwargs.get("command")
        if not text:
            return ToolResult.fail(
                "Missing required parameter: 'input' or 'command'",
                ErrorCode.VALIDATION_ERROR,
            )
        session_id = self._session(context)
        if session_id is None:
            return _no_terminal()

        add_newline = kwargs.get("add_newline", True)
        auto_read = kwargs.get("auto_read", True)
        wait_seconds = max(0.0, float(kwargs.get("sleep_seconds", 1.5)))
        final_input = text + "\n" if add_newline else text

        try:
            baseline = _last_entry_key(await self._terminal.read(session_id, 1))
            message = await self._terminal.write(session_id, final_input)
        except CollaboratorError as e:
            return ToolResult.fail(str(e), ErrorCode.COLLABORATOR_ERROR)

        result = ToolResult.ok(
            message=message,
            sent_input=final_input,
            note="Input sent to terminal successfully",
        )
        if not auto_read:
            return result

        settled, entries = await self._wait_for_output(session_id, baseline, wait_seconds)
        result.data["terminal_output"] = _format_entries(entries)
        result.data["auto_read"] = True
        if settled:
            result.data["note"] = "Command sent and monitored until completion"
        else:
            result.data["note"] = (
                f"Command sent, timed out after {wait_seconds:g}s, showing partial results"
            )
        return result

    async def _wait_for_output(
        self, session_id: str, baseline: _EntryKey | None, wait_seconds: float
    ) -> tuple[bool, list[TerminalEntry]]:
        """
        Poll until the newest entry has changed from *baseline* and then
        stayed the same for one poll interval.

        Returns ``(settled, last_entries)``.
        """
        deadline = time.monotonic() + wait_seconds
        previous = baseline
        while time.monotonic() < deadline:
            await asyncio.sleep(_POLL_INTERVAL)
            current = _last_entry_key(await self._terminal.read(session_id, 1))
            if current != baseline and current == previous:
                return True, await self._terminal.read(session_id, _SNAPSHOT_LINES)
            previous = current
        return False, await self._terminal.read(session_id, _SNAPSHOT_LINES)


class SleepTool(Tool):
    @property
    def name(self) -> str:
        return ToolName.SLEEP.value

    @property
    def description(self) -> str:
        return (
            "Wait for a number of seconds, e.g. to let a long-running command "
            "produce output before reading the terminal again."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "seconds": {
                    "type": "number",
                    "description": "Number of seconds to wait (can be decimal, e.g., 0.5 for 500ms)",
                },
            },
            "required": ["seconds"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        duration = max(0.1, min(float(kwargs["seconds"]), 10.0))
        await asyncio.sleep(duration)
        return ToolResult.ok(
            slept_seconds=duration,
            message=f"Waited for {duration:g} seconds",
        )


class SuggestTerminalCommandTool(Tool):
    @property
    def name(self) -> str:
        return ToolName.SUGGEST_TERMINAL_COMMAND.value

    @property
    def description(self) -> str:
        return (
            "Suggest a terminal command for the user to approve instead of running "
            "it directly. Use for destructive or sensitive commands."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The terminal command to suggest",
                },
                "reason": {
                    "type": "string",
                    "description": "Explanation of why this command would be helpful",
                },
            },
            "required": ["command", "reason"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        return ToolResult.ok(
            message="Command suggestion created",
            command=kwargs["command"],
            reason=kwargs["reason"],
            status="awaiting_approval",
            note="This command is awaiting user approval before execution.",
        )


class GetTerminalHistoryTool(_TerminalTool):
    @property
    def name(self) -> str:
        return ToolName.GET_TERMINAL_HISTORY.value

    @property
    def description(self) -> str:
        return "Get recent terminal command history and outputs for context."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "lines": {
                    "type": "integer",
                    "description": "Number of recent entries to retrieve (default: 20, max: 50)",
                },
            },
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        session_id = self._session(context)
        if session_id is None:
            return _no_terminal()
        lines = max(1, min(int(kwargs.get("lines", 20)), 50))
        try:
            entries = await self._terminal.read(session_id, lines)
        except CollaboratorError as e:
            return ToolResult.fail(str(e), ErrorCode.COLLABORATOR_ERROR)
        return ToolResult.ok(history=_format_entries(entries), entry_count=len(entries))
