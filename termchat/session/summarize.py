"""
Conversation summarization (history compaction).

The condensed history is: every original system message, one synthesized
system message carrying the summary, then the most recent non-system
messages verbatim.  The summary itself comes from an isolated generation
call that sees only the summary prompt, never the live session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from termchat.errors import ToolExecutionError
from termchat.llm.router import LLMRouter
from termchat.llm.types import Message, system_message, user_message

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "Previous conversation summary: "
SUMMARIZER_SYSTEM_PROMPT = "You are a helpful assistant that creates concise summaries."
MIN_MESSAGES_TO_SUMMARIZE = 4

SUMMARY_REASONS = ("topic_change", "automatic_length_limit", "user_request", "custom")
SUMMARY_LENGTHS = ("short", "medium", "long")

_LENGTH_INSTRUCTIONS = {
    "short": "Keep the summary very concise (2-3 sentences).",
    "medium": "Provide a moderate summary (1-2 paragraphs).",
    "long": "Provide a detailed summary (2-3 paragraphs).",
}

_REASON_CONTEXT = {
    "topic_change": "The user is switching to a completely different topic.",
    "automatic_length_limit": "The conversation has become too long and needs to be condensed.",
    "user_request": "The user has explicitly requested a summary.",
}


@dataclass
class SummaryOutcome:
    """Result of one summarization attempt."""

    action: str  # "summarized" or "none"
    messages: list[Message] = field(default_factory=list)
    summary: str = ""
    reason: str = ""
    original_count: int = 0

    @property
    def condensed_count(self) -> int:
        return len(self.messages)


def _render(message: Message) -> str:
    content = message.content
    if message.tool_calls and not content:
        names = ", ".join(tc.name for tc in message.tool_calls)
        content = f"[called tools: {names}]"
    return f"{message.role.upper()}: {content}"


def build_summary_prompt(messages: list[Message], reason: str, summary_length: str) -> str:
    length_instruction = _LENGTH_INSTRUCTIONS.get(summary_length, _LENGTH_INSTRUCTIONS["medium"])
    reason_context = _REASON_CONTEXT.get(reason, "The conversation needs to be summarized.")
    conversation = "\n\n".join(_render(m) for m in messages if m.role != "system")

    return f"""You are an expert at summarizing technical conversations. Please provide a comprehensive summary of this AI assistant conversation. {reason_context} {length_instruction}

**SUMMARIZATION GOALS:**
- Preserve key technical details and context
- Maintain important command outputs and file operations
- Keep track of project state and ongoing work
- Note any important decisions or conclusions
- Preserve error resolutions and troubleshooting steps

**CONVERSATION TO SUMMARIZE:**
{conversation}

**INSTRUCTIONS:**
- Write in clear, technical language
- Use bullet points or structured format for clarity
- Mention any ongoing context or state that should be preserved
- Keep the summary focused and actionable

Provide only the summary content, no meta-commentary about the summarization process.
"""


def condense_history(messages: list[Message], summary: str, keep_recent: int) -> list[Message]:
    """
    Build the compacted history.

    Leading ``tool`` messages are dropped from the retained tail: without the
    assistant message that requested them, providers reject the request.
    """
    system = [m for m in messages if m.role == "system"]
    non_system = [m for m in messages if m.role != "system"]
    recent = non_system[-keep_recent:] if keep_recent > 0 else []
    while recent and recent[0].role == "tool":
        recent = recent[1:]
    return system + [system_message(SUMMARY_PREFIX + summary)] + recent


class ConversationSummarizer:
    """
    Produces summaries through an isolated generation call.

    Parameters
    ----------
    router:
        Router whose active provider generates the summary.
    model:
        Model override for summaries; ``None`` uses the provider default.
    keep_recent:
        Default number of non-system messages kept verbatim.
    threshold:
        Auto-summarize once the history holds more messages than this.
    """

    def __init__(
        self,
        router: LLMRouter,
        *,
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        keep_recent: int = 10,
        threshold: int = 30,
    ) -> None:
        self.router = router
        self.model = model or None
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.keep_recent = keep_recent
        self.threshold = threshold

    def should_auto_summarize(self, messages: list[Message]) -> bool:
        return len(messages) > self.threshold

    async def summarize(
        self,
        messages: list[Message],
        reason: str = "user_request",
        *,
        keep_recent: int | None = None,
        summary_length: str = "medium",
    ) -> SummaryOutcome:
        """
        Summarize *messages*.  Does not touch any session state.

        Histories of three messages or fewer are returned unchanged with
        ``action="none"``.  Stream failures propagate.
        """
        if len(messages) < MIN_MESSAGES_TO_SUMMARIZE:
            return SummaryOutcome(
                action="none",
                messages=list(messages),
                reason=reason,
                original_count=len(messages),
            )

        prompt = build_summary_prompt(messages, reason, summary_length)
        response = await self.router.complete(
            [system_message(SUMMARIZER_SYSTEM_PROMPT), user_message(prompt)],
            None,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        summary = response.content.strip()
        if not summary:
            raise ToolExecutionError("Summary generation returned no text")

        keep = self.keep_recent if keep_recent is None else keep_recent
        condensed = condense_history(messages, summary, keep)
        logger.info(
            "Summarized history (%s): %d -> %d messages",
            reason,
            len(messages),
            len(condensed),
        )
        return SummaryOutcome(
            action="summarized",
            messages=condensed,
            summary=summary,
            reason=reason,
            original_count=len(messages),
        )
