"""End-to-end tests: full runtime wiring with a scripted model."""

from __future__ import annotations

import json

import pytest

from tests.mock_providers import ScriptedProvider, make_router, text_script, tool_call_script
from tests.mock_tools import FakeTerminal, FakeWeb
from termchat.backends.local import LocalFileSystem
from termchat.config import TermchatConfig
from termchat.llm.types import assistant_message, user_message
from termchat.runtime import Runtime
from termchat.session.summarize import SUMMARY_PREFIX


@pytest.fixture
def make_runtime(tmp_path):
    def _make(provider, **cfg_changes):
        cfg = TermchatConfig()
        for dotpath, value in cfg_changes.items():
            cfg.set_override(dotpath.replace("__", "."), value)
        return Runtime(
            cfg,
            router=make_router(provider),
            filesystem=LocalFileSystem(tmp_path),
            web=FakeWeb(),
            terminal=FakeTerminal(outputs={"uname": ["Linux"]}),
        )

    return _make


async def _run_turn(runtime, content):
    actor = runtime.new_actor("chat_e2e")
    await runtime.sessions.create("chat_e2e", actor)
    events = await (await actor.submit(content)).collect()
    history = await actor.get_history()
    await runtime.sessions.close_all()
    return events, history


class TestFileWorkflow:
    async def test_create_then_read_then_answer(self, make_runtime, tmp_path):
        provider = ScriptedProvider([
            tool_call_script("create_file", {"path": "notes/todo.txt", "content": "buy milk"}),
            tool_call_script("read_file", {"path": "notes/todo.txt"}, call_id="call_2"),
            text_script("Your todo list says: buy milk."),
        ])
        runtime = make_runtime(provider)

        events, history = await _run_turn(runtime, "write and read my todo")

        assert (tmp_path / "notes" / "todo.txt").read_text() == "buy milk"
        results = [e["result"] for e in events if e["type"] == "tool_result"]
        assert results[0]["success"] is True
        assert results[1]["content"] == "buy milk"
        assert history[0].role == "system"
        assert history[-1].content == "Your todo list says: buy milk."

    async def test_disabled_tool_is_unknown(self, make_runtime):
        provider = ScriptedProvider([
            tool_call_script("delete_file", {"path": "x"}),
            text_script("I cannot delete files."),
        ])
        runtime = make_runtime(provider, tools__disabled=["delete_file"])

        _, history = await _run_turn(runtime, "delete x")

        tool_msg = next(m for m in history if m.role == "tool")
        assert json.loads(tool_msg.content)["error"] == "Unknown tool: delete_file"
        schema_names = [t["function"]["name"] for t in provider.tools_seen[0]]
        assert "delete_file" not in schema_names


class TestTerminalWorkflow:
    async def test_send_to_terminal(self, make_runtime):
        provider = ScriptedProvider([
            tool_call_script("send_to_terminal", {"input": "uname", "auto_read": False}),
            text_script("Sent."),
        ])
        runtime = make_runtime(provider)

        events, _ = await _run_turn(runtime, "run uname")

        assert runtime.terminal.writes == [("chat_e2e", "uname\n")]
        result = next(e["result"] for e in events if e["type"] == "tool_result")
        assert result["sent_input"] == "uname\n"


class TestSummarizeWorkflow:
    async def test_summarize_chat_tool_replaces_history(self, make_runtime):
        provider = ScriptedProvider([
            tool_call_script("summarize_chat", {"reason": "user_request", "max_history_length": 2}),
            text_script("We discussed several topics."),
            text_script("Summarized."),
        ])
        runtime = make_runtime(provider)
        actor = runtime.new_actor("chat_e2e")
        await runtime.sessions.create("chat_e2e", actor)
        history = await actor.get_history()
        for i in range(3):
            history += [user_message(f"question {i}"), assistant_message(f"answer {i}")]
        await actor.replace_history(history)

        await (await actor.submit("please summarize")).collect()
        after = await actor.get_history()
        await runtime.sessions.close_all()

        assert [m.role for m in after] == ["system", "system", "user", "assistant", "tool", "assistant"]
        assert after[1].content == SUMMARY_PREFIX + "We discussed several topics."
        assert after[2].content == "please summarize"
        assert json.loads(after[4].content)["original_message_count"] == 9
        assert after[-1].content == "Summarized."

