"""LLM subsystem -- providers, routing, stream decoding and tool-call assembly."""

from termchat.llm.decoder import StreamDecoder, decode_sse
from termchat.llm.router import LLMRouter
from termchat.llm.tool_call_assembler import ToolCallAssembler
from termchat.llm.types import (
    AssembledAssistant,
    ContentDelta,
    FinishDelta,
    Message,
    StreamDelta,
    ThinkingDelta,
    ToolCall,
    ToolCallFragment,
)

__all__ = [
    "AssembledAssistant",
    "ContentDelta",
    "FinishDelta",
    "LLMRouter",
    "Message",
    "StreamDecoder",
    "StreamDelta",
    "ThinkingDelta",
    "ToolCall",
    "ToolCallAssembler",
    "ToolCallFragment",
    "decode_sse",
]
