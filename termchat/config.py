"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < profile < env vars < CLI flags < per-session overrides
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any

import yaml


# ---------------------------------------------------------------------------
# Provider presets
# ---------------------------------------------------------------------------

PROVIDER_PRESETS: dict[str, dict[str, str]] = {
    "openrouter": {
        "api_base": "https://openrouter.ai/api/v1",
        "api_key_env": "OPENROUTER_API_KEY",
        "model": "x-ai/grok-4-fast",
    },
    "groq": {
        "api_base": "https://api.groq.com/openai/v1",
        "api_key_env": "GROQ_API_KEY",
        "model": "llama-3.3-70b-versatile",
    },
    "deepinfra": {
        "api_base": "https://api.deepinfra.com/v1/openai",
        "api_key_env": "DEEPINFRA_API_KEY",
        "model": "meta-llama/Meta-Llama-3.1-70B-Instruct",
    },
}


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LLMConfig:
    provider: str = "openrouter"
    model: str = ""
    api_base: str = ""
    api_key_env: str = ""
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout_seconds: int = 120


@dataclass
class SessionConfig:
    max_continuations: int = 20
    tool_timeout_seconds: int = 120
    summarize_threshold: int = 30
    keep_recent: int = 10
    system_prompt: str = ""


@dataclass
class SummaryConfig:
    model: str = ""
    temperature: float = 0.3
    max_tokens: int = 1000


@dataclass
class ToolsConfig:
    disabled: list[str] = field(default_factory=list)
    workspace_root: str = "."


@dataclass
class WebConfig:
    search_url: str = "https://api.search.brave.com/res/v1/web/search"
    search_api_key_env: str = "BRAVE_API_KEY"
    timeout_seconds: int = 15
    user_agent: str = "termchat/0.1 (+https://github.com/termchat)"


@dataclass
class PluginsConfig:
    enabled: bool = False
    allow_distributions: list[str] = field(default_factory=list)
    allow_tools: list[str] = field(default_factory=list)


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8765
    max_message_bytes: int = 4 * 1024 * 1024


@dataclass
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class TermchatConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    web: WebConfig = field(default_factory=WebConfig)
    plugins: PluginsConfig = field(default_factory=PluginsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def set_override(self, dotpath: str, value: Any) -> None:
        """
        Overwrite one field in place using dot notation (e.g. 'llm.model').

        The change is seen by everything holding this config object, i.e. the
        whole process once a ``Runtime`` is built from it.
        """
        _apply_dotpath(self, dotpath, value)

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in (raw or {}).items() if k in valid_fields}
    return cls(**filtered)


def _apply_provider_preset(llm: LLMConfig) -> None:
    """Fill blank endpoint fields from the preset for ``llm.provider``."""
    preset = PROVIDER_PRESETS.get(llm.provider, {})
    if not llm.api_base:
        llm.api_base = preset.get("api_base", "")
    if not llm.api_key_env:
        llm.api_key_env = preset.get("api_key_env", "")
    if not llm.model:
        llm.model = preset.get("model", "")


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "TERMCHAT_LLM_PROVIDER":            ("llm.provider", str),
    "LLM_MODEL":                        ("llm.model", str),
    "TERMCHAT_LLM_MODEL":               ("llm.model", str),
    "TERMCHAT_LLM_API_BASE":            ("llm.api_base", str),
    "TERMCHAT_LLM_API_KEY_ENV":         ("llm.api_key_env", str),
    "TERMCHAT_LLM_TEMPERATURE":         ("llm.temperature", float),
    "TERMCHAT_LLM_MAX_TOKENS":          ("llm.max_tokens", int),
    "TERMCHAT_LLM_TIMEOUT":             ("llm.timeout_seconds", int),
    "TERMCHAT_SESSION_MAX_CONTINUATIONS": ("session.max_continuations", int),
    "TERMCHAT_SESSION_TOOL_TIMEOUT":    ("session.tool_timeout_seconds", int),
    "TERMCHAT_SESSION_SUMMARIZE_AT":    ("session.summarize_threshold", int),
    "TERMCHAT_SESSION_KEEP_RECENT":     ("session.keep_recent", int),
    "TERMCHAT_SUMMARY_MODEL":           ("summary.model", str),
    "TERMCHAT_TOOLS_DISABLED":          ("tools.disabled", list),
    "TERMCHAT_TOOLS_WORKSPACE":         ("tools.workspace_root", str),
    "TERMCHAT_WEB_SEARCH_URL":          ("web.search_url", str),
    "TERMCHAT_WEB_TIMEOUT":             ("web.timeout_seconds", int),
    "TERMCHAT_PLUGINS_ENABLED":         ("plugins.enabled", bool),
    "TERMCHAT_SERVER_HOST":             ("server.host", str),
    "TERMCHAT_SERVER_PORT":             ("server.port", int),
    "TERMCHAT_LOG_LEVEL":               ("logging.level", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> TermchatConfig:
    """
    Build a TermchatConfig by layering sources in precedence order:

        defaults  <  config file  <  profile  <  env vars  <  CLI flags

    Provider presets are applied last, so they only fill fields that no
    source set explicitly.

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            if not isinstance(file_data, dict):
                raise ValueError(f"Config file {p} must contain a mapping")
            raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile and "profiles" in raw:
        profile_data = raw.get("profiles", {}).get(profile, {})
        if profile_data:
            raw = _deep_merge(raw, profile_data)

    # --- Build sections from raw ---
    cfg = TermchatConfig(
        llm=_build_section(LLMConfig, raw.get("llm", {})),
        session=_build_section(SessionConfig, raw.get("session", {})),
        summary=_build_section(SummaryConfig, raw.get("summary", {})),
        tools=_build_section(ToolsConfig, raw.get("tools", {})),
        web=_build_section(WebConfig, raw.get("web", {})),
        plugins=_build_section(PluginsConfig, raw.get("plugins", {})),
        server=_build_section(ServerConfig, raw.get("server", {})),
        logging=_build_section(LoggingConfig, raw.get("logging", {})),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None and val != "":
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            if value is not None:
                _apply_dotpath(cfg, dotpath, value)

    _apply_provider_preset(cfg.llm)
    return cfg
