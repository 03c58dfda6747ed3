"""
Tool dispatch table.

``ToolDispatcher.execute(name, arguments, context)`` is the single seam
between assembled tool calls and tool handlers.  It never raises: every
failure becomes a ``ToolResult`` with ``success=False`` so the model can see
and react to its own mistakes.

Pipeline per call:
  1. Parse the raw argument text (empty text means ``{}``).
  2. Resolve the handler by name.
  3. Validate arguments against the tool's JSON schema.
  4. Run the handler under a timeout.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from termchat.errors import ToolArgumentError, ToolExecutionError, UnknownToolError
from termchat.tools.base import Tool, ToolContext, ToolName
from termchat.tools.registry import ToolRegistry
from termchat.tools.validation import ToolValidator
from termchat.types import ErrorCode, ToolResult

logger = logging.getLogger(__name__)

INVALID_ARGUMENTS_MESSAGE = "Invalid function arguments"


def parse_arguments(arguments: str | None) -> dict[str, Any]:
    """Decode tool-call argument text into a dict or raise ``ToolArgumentError``."""
    if arguments is None or not arguments.strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ToolArgumentError(str(exc)) from exc
    if not isinstance(parsed, dict):
        raise ToolArgumentError("arguments must be a JSON object")
    return parsed


def result_content(result: ToolResult) -> str:
    """Serialize a result into the content of a ``tool`` message."""
    return json.dumps(result.to_payload(), default=str)


class ToolDispatcher:
    """
    Routes tool calls to registered handlers.

    Builtin handlers are keyed by ``ToolName``; plugin tools registered on the
    same registry dispatch through the identical contract.  Every result that
    reached a handler carries ``metadata["tool_kind"]`` (``"builtin"`` or
    ``"plugin"``).
    """

    def __init__(self, registry: ToolRegistry, *, timeout: float = 120.0) -> None:
        self.registry = registry
        self.timeout = timeout

    @staticmethod
    def builtin_kind(name: str) -> ToolName | None:
        """Return the builtin variant for *name*, or ``None`` for non-builtins."""
        try:
            return ToolName(name)
        except ValueError:
            return None

    def resolve(self, name: str) -> Tool:
        tool = self.registry.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    async def execute(self, name: str, arguments: str | None, context: ToolContext) -> ToolResult:
        # 1. Parse
        try:
            args = parse_arguments(arguments)
        except ToolArgumentError as exc:
            logger.info("Tool %s: invalid arguments (%s)", name, exc)
            return ToolResult.fail(INVALID_ARGUMENTS_MESSAGE, ErrorCode.INVALID_ARGUMENTS)

        # 2. Resolve
        try:
            tool = self.resolve(name)
        except UnknownToolError as exc:
            logger.info("Tool call for unknown tool %r", name)
            return ToolResult.fail(str(exc), ErrorCode.UNKNOWN_TOOL)

        # 3. Validate
        valid, error_msg = ToolValidator.validate(tool, args)
        if not valid:
            return ToolResult.fail(
                f"Invalid arguments for {name}: {error_msg}",
                ErrorCode.VALIDATION_ERROR,
            )

        # 4. Execute with timeout
        kind = "builtin" if self.builtin_kind(name) is not None else "plugin"
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(
                tool.execute(context, **args),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Tool %s (%s) timed out after %ss", name, kind, self.timeout)
            result = ToolResult.fail(
                f"Tool {name} timed out after {self.timeout:g}s",
                ErrorCode.TIMEOUT,
            )
        except ToolExecutionError as exc:
            result = ToolResult.fail(str(exc), ErrorCode.TOOL_EXCEPTION)
        except Exception as exc:
            logger.exception("Tool %s (%s) raised", name, kind)
            result = ToolResult.fail(
                f"Error executing {name}: {exc}",
                ErrorCode.TOOL_EXCEPTION,
            )
        else:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "Tool %s (%s) finished in %dms (success=%s)",
                name, kind, duration_ms, result.success,
            )

        result.metadata["tool_kind"] = kind
        return result
