"""The summarize_chat tool."""

from __future__ import annotations

from termchat.errors import StreamError, ToolExecutionError
from termchat.session.summarize import SUMMARY_LENGTHS, SUMMARY_REASONS, ConversationSummarizer
from termchat.tools.base import Tool, ToolContext, ToolName
from termchat.types import ErrorCode, ToolResult


class SummarizeChatTool(Tool):
    def __init__(self, summarizer: ConversationSummarizer) -> None:
        self._summarizer = summarizer

    @property
    def name(self) -> str:
        return ToolName.SUMMARIZE_CHAT.value

    @property
    def description(self) -> str:
        return (
            "Summarize the chat history to keep the conversation focused, e.g. when "
            "the user switches topics or the conversation gets long."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "reason": {
                    "type": "string",
                    "description": "Why the history is being summarized",
                    "enum": list(SUMMARY_REASONS),
                },
                "max_history_length": {
                    "type": "integer",
                    "description": "Number of recent messages to keep after summarization (default: 10)",
                },
                "summary_length": {
                    "type": "string",
                    "description": "Length of summary: 'short', 'medium', or 'long' (default: 'medium')",
                    "enum": list(SUMMARY_LENGTHS),
                },
            },
            "required": ["reason"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        reason = kwargs["reason"]
        try:
            outcome = await self._summarizer.summarize(
                context.history,
                reason,
                keep_recent=max(1, int(kwargs.get("max_history_length", 10))),
                summary_length=kwargs.get("summary_length", "medium"),
            )
        except (StreamError, ToolExecutionError) as e:
            return ToolResult.fail(f"Error summarizing chat: {e}", ErrorCode.TOOL_EXCEPTION)

        if outcome.action == "none":
            return ToolResult.ok(message="Chat history is too short to summarize", action="none")

        if context.replace_history is not None:
            await context.replace_history(outcome.messages)

        preview = outcome.summary[:200]
        if len(outcome.summary) > 200:
            preview += "..."
        return ToolResult.ok(
            message="Chat history summarized successfully",
            reason=reason,
            original_message_count=outcome.original_count,
            condensed_message_count=outcome.condensed_count,
            summary_preview=preview,
        )
