"""Registration of the builtin tool set."""

from __future__ import annotations

from typing import Iterable

from termchat.backends.base import FileSystem, TerminalProvider, WebProvider
from termchat.session.summarize import ConversationSummarizer
from termchat.tools.base import Tool
from termchat.tools.files import (
    AppendToFileTool,
    CreateFileTool,
    DeleteFileTool,
    FindAndReplaceTool,
    ListFilesTool,
    ReadFileTool,
    UpdateFileTool,
)
from termchat.tools.history import SummarizeChatTool
from termchat.tools.registry import ToolRegistry
from termchat.tools.terminal import (
    GetTerminalHistoryTool,
    ReadTerminalTool,
    SendToTerminalTool,
    SleepTool,
    SuggestTerminalCommandTool,
)
from termchat.tools.web import BrowseWebTool, SearchWebTool


def builtin_tools(
    *,
    filesystem: FileSystem,
    summarizer: ConversationSummarizer,
    terminal: TerminalProvider | None = None,
    web: WebProvider | None = None,
) -> list[Tool]:
    tools: list[Tool] = [
        ReadTerminalTool(terminal),
        SendToTerminalTool(terminal),
        SleepTool(),
        SuggestTerminalCommandTool(),
        GetTerminalHistoryTool(terminal),
        CreateFileTool(filesystem),
        ReadFileTool(filesystem),
        UpdateFileTool(filesystem),
        AppendToFileTool(filesystem),
        DeleteFileTool(filesystem),
        FindAndReplaceTool(filesystem),
        ListFilesTool(filesystem),
        SummarizeChatTool(summarizer),
    ]
    if web is not None:
        tools.extend([BrowseWebTool(web), SearchWebTool(web)])
    return tools


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    filesystem: FileSystem,
    summarizer: ConversationSummarizer,
    terminal: TerminalProvider | None = None,
    web: WebProvider | None = None,
    disabled: Iterable[str] = (),
) -> int:
    """Register every builtin tool not named in *disabled*.  Returns the count."""
    skip = set(disabled)
    count = 0
    for tool in builtin_tools(
        filesystem=filesystem, summarizer=summarizer, terminal=terminal, web=web
    ):
        if tool.name in skip:
            continue
        registry.register(tool)
        count += 1
    return count
