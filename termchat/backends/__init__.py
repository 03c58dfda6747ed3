"""Collaborator backends: terminal sessions, file system and web access."""

from termchat.backends.base import (
    FileEntry,
    FileSystem,
    TerminalEntry,
    TerminalProvider,
    WebProvider,
)
from termchat.backends.local import LocalFileSystem
from termchat.backends.web import HttpWebProvider

__all__ = [
    "FileEntry",
    "FileSystem",
    "HttpWebProvider",
    "LocalFileSystem",
    "TerminalEntry",
    "TerminalProvider",
    "WebProvider",
]
