"""
Runtime wiring.

Builds the shared pieces of a termchat process from a ``TermchatConfig``:
provider router, summarizer, tool registry, dispatcher and continuation
controller.  ``new_actor()`` then creates one ``SessionActor`` per
conversation on top of them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from termchat.backends.base import FileSystem, TerminalProvider, WebProvider
from termchat.backends.local import LocalFileSystem
from termchat.backends.web import HttpWebProvider
from termchat.config import TermchatConfig
from termchat.llm.router import LLMRouter, build_router, check_api_key
from termchat.prompts.system import build_system_prompt
from termchat.session.actor import SessionActor
from termchat.session.continuation import ContinuationController
from termchat.session.registry import SessionRegistry
from termchat.session.summarize import ConversationSummarizer
from termchat.tools.builtin import register_builtin_tools
from termchat.tools.dispatch import ToolDispatcher
from termchat.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "termchat.yaml",
        Path.cwd() / "termchat.yml",
        Path.home() / ".config" / "termchat" / "config.yaml",
        Path.home() / ".termchat" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def build_web_provider(cfg: TermchatConfig) -> HttpWebProvider:
    api_key = os.environ.get(cfg.web.search_api_key_env, "") if cfg.web.search_api_key_env else ""
    return HttpWebProvider(
        search_url=cfg.web.search_url,
        api_key=api_key,
        timeout=float(cfg.web.timeout_seconds),
        user_agent=cfg.web.user_agent,
    )


class Runtime:
    """
    Process-wide collaborators shared by every session.

    Parameters
    ----------
    cfg : TermchatConfig
        Effective configuration.
    router : LLMRouter | None
        Pre-built router; built from ``cfg.llm`` when omitted.
    filesystem, web, terminal :
        Collaborators handed to the builtin tools.  ``terminal`` has no
        default; without it the terminal tools report that no terminal is
        attached.
    registry : SessionRegistry | None
        Session table consulted for the global kill switch.

    ``api_key_warning`` is set when the router is built from config and the
    configured key is missing or malformed; clients are told on connect.
    """

    def __init__(
        self,
        cfg: TermchatConfig,
        *,
        router: LLMRouter | None = None,
        filesystem: FileSystem | None = None,
        web: WebProvider | None = None,
        terminal: TerminalProvider | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self.cfg = cfg
        self.api_key_warning: str | None = None
        if router is None:
            self.api_key_warning = check_api_key(cfg.llm)
            router = build_router(cfg.llm)
        self.router = router
        self.filesystem = filesystem or LocalFileSystem(cfg.tools.workspace_root)
        self.web = web or build_web_provider(cfg)
        self.terminal = terminal
        self.sessions = registry or SessionRegistry()

        self.summarizer = ConversationSummarizer(
            self.router,
            model=cfg.summary.model or None,
            temperature=cfg.summary.temperature,
            max_tokens=cfg.summary.max_tokens,
            keep_recent=cfg.session.keep_recent,
            threshold=cfg.session.summarize_threshold,
        )

        self.tools = ToolRegistry()
        count = register_builtin_tools(
            self.tools,
            filesystem=self.filesystem,
            summarizer=self.summarizer,
            terminal=self.terminal,
            web=self.web,
            disabled=cfg.tools.disabled,
        )
        loaded = self.tools.load_plugins(
            enabled=cfg.plugins.enabled,
            allow_distributions=set(cfg.plugins.allow_distributions) if cfg.plugins.allow_distributions else None,
            allow_tools=set(cfg.plugins.allow_tools) if cfg.plugins.allow_tools else None,
            filesystem=self.filesystem,
            web=self.web,
            terminal=self.terminal,
        )
        logger.info("Registered %d builtin tools and %d plugin tools", count, loaded)

        self.dispatcher = ToolDispatcher(
            self.tools, timeout=float(cfg.session.tool_timeout_seconds)
        )
        self.controller = ContinuationController(
            self.router,
            self.dispatcher,
            model=cfg.llm.model or None,
            max_continuations=cfg.session.max_continuations,
        )

    def system_prompt(self, session_id: str) -> str:
        if self.cfg.session.system_prompt:
            return self.cfg.session.system_prompt
        return build_system_prompt(tools=self.tools.list(), session_id=session_id)

    def new_actor(self, session_id: str, *, terminal_session_id: str | None = None) -> SessionActor:
        return SessionActor(
            session_id,
            self.controller,
            system_prompt=self.system_prompt(session_id),
            summarizer=self.summarizer,
            terminal_session_id=terminal_session_id or session_id,
            is_globally_stopped=self.sessions.is_globally_stopped,
        )
