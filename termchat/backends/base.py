"""Collaborator interfaces (abstract)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from termchat.errors import CollaboratorError

__all__ = [
    "CollaboratorError",
    "FileEntry",
    "FileSystem",
    "TerminalEntry",
    "TerminalProvider",
    "WebProvider",
]


@dataclass
class TerminalEntry:
    """One recorded terminal event: user input or shell output."""

    type: str  # "input" or "output"
    content: str
    timestamp: datetime

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.type,
            "content": self.content.strip(),
            "timestamp": self.timestamp.isoformat(),
        }


class TerminalProvider(ABC):
    """
    Access to the terminal session attached to a chat.

    Spawning the shell and buffering its output are the provider's job; the
    tools only read recent entries and write input.
    """

    @abstractmethod
    async def read(self, session_id: str, max_lines: int) -> list[TerminalEntry]:
        """Return up to *max_lines* most recent entries, oldest first."""
        ...

    @abstractmethod
    async def write(self, session_id: str, text: str) -> str:
        """
        Send *text* to the terminal.

        Returns a short confirmation message.  Raises ``CollaboratorError``
        when the terminal is gone or rejects the input.
        """
        ...


@dataclass
class FileEntry:
    name: str
    type: str  # "file" or "directory"
    size: int
    modified: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "modified": self.modified,
        }


class FileSystem(ABC):
    """
    File operations used by the file tools.

    Methods are coroutines and must not block the event loop.
    Every method raises ``CollaboratorError`` with a readable message on
    failure.
    """

    @abstractmethod
    async def exists(self, path: str) -> bool: ...

    @abstractmethod
    async def create(self, path: str, content: str) -> int:
        """Write a new file (parents created).  Returns bytes written."""
        ...

    @abstractmethod
    async def read(self, path: str) -> str: ...

    @abstractmethod
    async def update(self, path: str, content: str) -> int:
        """Replace the file's content.  Returns bytes written."""
        ...

    @abstractmethod
    async def append(self, path: str, content: str) -> int:
        """Append to an existing file.  Returns bytes appended."""
        ...

    @abstractmethod
    async def delete(self, path: str) -> None: ...

    @abstractmethod
    async def list(
        self,
        path: str,
        *,
        recursive: bool = False,
        max_depth: int = 3,
        show_hidden: bool = False,
    ) -> list[FileEntry]:
        """List a directory, sorted by (type, name)."""
        ...


class WebProvider(ABC):
    """
    Web search and page fetching.

    Both methods return a dict with ``success`` and either the payload fields
    or ``error``.  They never raise.
    """

    @abstractmethod
    async def search(self, query: str, max_results: int = 5) -> dict[str, Any]:
        """Ranked results as ``results: [{rank, title, url, snippet}]``."""
        ...

    @abstractmethod
    async def fetch(self, url: str, max_length: int | None = None) -> dict[str, Any]:
        """
        Extracted page text as ``content`` plus optional ``title``.

        When *max_length* is given, ``content`` is cut to that many characters
        and ``truncated`` is set to ``True``.
        """
        ...
