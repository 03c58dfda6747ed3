"""
Exception hierarchy.

Errors that end a generation stream derive from ``StreamError`` and are
surfaced to the session caller.  Errors local to one tool call never leave the
dispatcher as exceptions; they are converted to a failed ``ToolResult``.
"""

from __future__ import annotations


class TermchatError(Exception):
    """Base class for all termchat errors."""


# ---------------------------------------------------------------------------
# Stream errors
# ---------------------------------------------------------------------------


class StreamError(TermchatError):
    """A failure that ends the current generation stream."""


class TransportError(StreamError):
    """Network failure while connecting to or reading from the provider."""


class ProviderError(StreamError):
    """The provider answered with a non-2xx HTTP status."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        detail = body.strip()[:500] if body else ""
        message = f"Provider returned HTTP {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DecodeError(TermchatError):
    """A single stream event could not be decoded."""


# ---------------------------------------------------------------------------
# Tool errors
# ---------------------------------------------------------------------------


class ToolArgumentError(TermchatError):
    """Tool-call arguments are not a JSON object."""


class UnknownToolError(TermchatError):
    """No handler is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolExecutionError(TermchatError):
    """A tool handler failed."""


class CollaboratorError(TermchatError):
    """Structured error from a terminal, file-system or web collaborator."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


# ---------------------------------------------------------------------------
# Session errors
# ---------------------------------------------------------------------------


class SessionStoppedError(TermchatError):
    """A new user turn was submitted while the session is stopped."""

    def __init__(self, message: str, *, globally: bool = False):
        super().__init__(message)
        self.globally = globally


class SessionClosedError(TermchatError):
    """The session actor has been closed."""
