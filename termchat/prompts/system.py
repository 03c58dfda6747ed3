"""System prompt builder."""

from __future__ import annotations

import platform
from datetime import datetime, timezone

from termchat.tools.base import Tool


def build_system_prompt(
    tools: list[Tool] | None = None,
    session_id: str | None = None,
    extra_sections: list[str] | None = None,
    now: datetime | None = None,
) -> str:
    """
    Build the system prompt for a chat session.

    Assembles the runtime context, behaviour guidelines and the tool list
    into a single prompt string.
    """
    now = now or datetime.now(timezone.utc)
    sections: list[str] = []

    sections.append(
        "You are a helpful AI terminal assistant. You provide guidance and "
        "assistance to users working in their terminal environment."
    )

    context_lines = [
        f"- Date: {now.date().isoformat()}",
        f"- Time: {now.isoformat()}",
        f"- Operating System: {platform.system() or 'unknown'} ({platform.release() or 'unknown'})",
        f"- Architecture: {platform.machine() or 'unknown'}",
    ]
    if session_id:
        context_lines.append(f"- Session ID: {session_id}")
    sections.append("## Current Context\n\n" + "\n".join(context_lines))

    sections.append(GUIDELINES_SECTION)

    if tools:
        tool_lines = [f"- **{t.name}**: {t.description}" for t in tools]
        sections.append("## Available Tools\n\n" + "\n".join(tool_lines))

    sections.append(WEB_SECTION)
    sections.append(TOPIC_SECTION)
    sections.append(BOUNDARIES_SECTION)

    if extra_sections:
        sections.extend(extra_sections)

    return "\n\n".join(sections)


GUIDELINES_SECTION = """## Behavior Guidelines

- Observe and analyze terminal output when asked about it.
- Explain what is happening in the terminal when requested.
- Suggest helpful next steps when appropriate.
- Ask for clarification before making major changes.
- When using send_to_terminal, pick sleep_seconds to match the command: about 0.3 for fast commands, 2-5 for slow ones.
- If a tool returns an error, report it clearly and suggest alternatives."""

WEB_SECTION = """## Web Browsing

- Only search the web when the user asks for current information, specific websites or news.
- Search first with search_web, then browse the most relevant results with browse_web.
- Never guess or make up URLs. Browse only URLs from search results or ones the user provided.
- Avoid visiting more than five links for a single request."""

TOPIC_SECTION = """## Topic Management

- If the user switches to an unrelated topic, call summarize_chat with reason "topic_change" first.
- When the user explicitly asks for a summary, use reason "user_request".
- Do not over-summarize; only summarize on a clear topic shift."""

BOUNDARIES_SECTION = """## Boundaries

- Do not change files without clear user intent.
- Ask before running commands that could be destructive.
- Explain what you are doing and why."""
