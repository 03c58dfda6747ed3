"""Session layer: actor, continuation loop, registry, events, summarization."""

from termchat.session.actor import (
    GLOBALLY_STOPPED_MESSAGE,
    STOPPED_MESSAGE,
    SessionActor,
    SessionState,
    TurnStream,
)
from termchat.session.continuation import ContinuationController
from termchat.session.registry import RegistryEntry, SessionRegistry, new_session_id
from termchat.session.summarize import ConversationSummarizer, SummaryOutcome

__all__ = [
    "ContinuationController",
    "ConversationSummarizer",
    "GLOBALLY_STOPPED_MESSAGE",
    "RegistryEntry",
    "STOPPED_MESSAGE",
    "SessionActor",
    "SessionRegistry",
    "SessionState",
    "SummaryOutcome",
    "TurnStream",
    "new_session_id",
]
