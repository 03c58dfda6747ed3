"""termchat - streaming chat sessions for a tool-using terminal assistant."""

__version__ = "0.1.0"
