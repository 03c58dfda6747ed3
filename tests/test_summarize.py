"""Tests for history compaction and the summarize_chat tool."""

from __future__ import annotations

import pytest

from tests.mock_providers import ScriptedProvider, make_router, text_script
from termchat.errors import ToolExecutionError, TransportError
from termchat.llm.types import (
    ToolCall,
    assistant_message,
    system_message,
    tool_message,
    user_message,
)
from termchat.session.summarize import (
    SUMMARIZER_SYSTEM_PROMPT,
    SUMMARY_PREFIX,
    ConversationSummarizer,
    build_summary_prompt,
    condense_history,
)
from termchat.tools.base import ToolContext
from termchat.tools.history import SummarizeChatTool


def _conversation(turns):
    messages = [system_message("sys")]
    for i in range(turns):
        messages += [user_message(f"u{i}"), assistant_message(f"a{i}")]
    return messages


class TestCondenseHistory:
    def test_keeps_system_then_summary_then_tail(self):
        condensed = condense_history(_conversation(5), "the gist", keep_recent=3)
        assert condensed[0] == system_message("sys")
        assert condensed[1] == system_message(SUMMARY_PREFIX + "the gist")
        assert [m.content for m in condensed[2:]] == ["a3", "u4", "a4"]

    def test_drops_leading_tool_messages_from_tail(self):
        call = ToolCall(id="c1", name="echo", arguments="{}")
        messages = [
            user_message("u"),
            assistant_message("", [call]),
            tool_message("c1", "{}"),
            assistant_message("done"),
        ]
        condensed = condense_history(messages, "s", keep_recent=2)
        assert [m.role for m in condensed] == ["system", "assistant"]

    def test_keep_zero(self):
        condensed = condense_history(_conversation(2), "s", keep_recent=0)
        assert [m.role for m in condensed] == ["system", "system"]


class TestPrompt:
    def test_excludes_system_messages(self):
        prompt = build_summary_prompt(_conversation(1), "topic_change", "short")
        assert "USER: u0" in prompt
        assert "ASSISTANT: a0" in prompt
        assert "SYSTEM: sys" not in prompt
        assert "2-3 sentences" in prompt
        assert "switching to a completely different topic" in prompt

    def test_tool_only_assistant_message_is_rendered(self):
        call = ToolCall(id="c1", name="list_files", arguments="{}")
        prompt = build_summary_prompt([assistant_message("", [call])], "custom", "medium")
        assert "[called tools: list_files]" in prompt


class TestSummarizer:
    async def test_short_history_is_left_alone(self):
        provider = ScriptedProvider([text_script("unused")])
        summarizer = ConversationSummarizer(make_router(provider))
        history = [user_message("a"), assistant_message("b")]

        outcome = await summarizer.summarize(history)

        assert outcome.action == "none"
        assert outcome.messages == history
        assert provider.call_count == 0

    async def test_isolated_generation_call(self):
        provider = ScriptedProvider([text_script("  condensed  ")])
        summarizer = ConversationSummarizer(
            make_router(provider), model="small-model", temperature=0.1, max_tokens=50
        )

        outcome = await summarizer.summarize(_conversation(4), keep_recent=2)

        assert outcome.action == "summarized"
        assert outcome.summary == "condensed"
        assert outcome.original_count == 9
        assert outcome.condensed_count == 4
        sent = provider.calls[0]
        assert sent[0] == system_message(SUMMARIZER_SYSTEM_PROMPT)
        assert sent[1].role == "user"
        assert provider.tools_seen == [None]
        assert provider.models_seen == ["small-model"]

    async def test_empty_summary_raises(self):
        summarizer = ConversationSummarizer(make_router(ScriptedProvider([text_script("")])))
        with pytest.raises(ToolExecutionError):
            await summarizer.summarize(_conversation(3))

    def test_threshold(self):
        summarizer = ConversationSummarizer(make_router(ScriptedProvider()), threshold=3)
        assert not summarizer.should_auto_summarize(_conversation(1))
        assert summarizer.should_auto_summarize(_conversation(2))


class TestSummarizeChatTool:
    async def test_replaces_history_through_callback(self):
        replaced = []

        async def replace_history(messages):
            replaced.append(messages)

        summarizer = ConversationSummarizer(make_router(ScriptedProvider([text_script("S" * 300)])))
        tool = SummarizeChatTool(summarizer)
        ctx = ToolContext(
            session_id="chat_test",
            history=_conversation(6),
            replace_history=replace_history,
        )

        result = await tool.execute(ctx, reason="user_request", max_history_length=4)

        assert result.success
        assert result.data["original_message_count"] == 13
        assert result.data["condensed_message_count"] == 6
        assert result.data["summary_preview"] == "S" * 200 + "..."
        assert len(replaced) == 1
        assert replaced[0][1].content.startswith(SUMMARY_PREFIX)

    async def test_too_short(self):
        tool = SummarizeChatTool(ConversationSummarizer(make_router(ScriptedProvider())))
        ctx = ToolContext(session_id="chat_test", history=[user_message("hi")])
        result = await tool.execute(ctx, reason="topic_change")
        assert result.success
        assert result.data["action"] == "none"

    async def test_generation_failure_is_structured(self):
        provider = ScriptedProvider([[TransportError("down")]])
        tool = SummarizeChatTool(ConversationSummarizer(make_router(provider)))
        ctx = ToolContext(session_id="chat_test", history=_conversation(3))
        result = await tool.execute(ctx, reason="user_request")
        assert not result.success
        assert "down" in result.error
