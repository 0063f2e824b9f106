"""Resolved runtime settings for the relay.

Raw configuration comes from `config_loader.load_config`; this module turns
it into frozen dataclasses with defaults applied and environment overrides
layered on top.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .config_loader import is_unresolved_placeholder, load_config

logger = logging.getLogger("chatrelay")

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
DEFAULT_SITE_URL = "http://localhost:3000"
DEFAULT_SITE_NAME = "chatrelay"
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that can help users build applications, "
    "write code, and solve problems. Be concise and practical in your responses."
)


@dataclass(frozen=True)
class UpstreamSettings:
    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    default_model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout_seconds: Optional[float] = None
    site_url: str = DEFAULT_SITE_URL
    site_name: str = DEFAULT_SITE_NAME

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


@dataclass(frozen=True)
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 3001


@dataclass(frozen=True)
class RelaySettings:
    upstream: UpstreamSettings = field(default_factory=UpstreamSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass(frozen=True)
class MissingSetting:
    name: str
    description: str
    example: str
    required: bool = True


def _get(cfg: Mapping[str, Any], *keys: str):
    cur: Any = cfg
    for key in keys:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_secret(value) -> Optional[str]:
    """Like _to_str, but an unresolved `${VAR}` placeholder counts as unset."""
    text = _to_str(value)
    if text is None or is_unresolved_placeholder(text):
        return None
    return text


def load_settings(config: Mapping[str, Any] | None = None) -> RelaySettings:
    """Build settings from a config mapping (loaded from disk when omitted).

    Environment overrides:
        OPENROUTER_API_KEY: process-wide fallback credential
        CHATRELAY_DEFAULT_MODEL: default model identifier
        CHATRELAY_HOST / CHATRELAY_PORT: bind address
    """
    if config is None:
        config = load_config()

    upstream_cfg = _get(config, "upstream") or {}
    server_cfg = _get(config, "server") or {}

    base_url = _to_str(upstream_cfg.get("base_url")) or DEFAULT_BASE_URL
    api_key = _to_secret(upstream_cfg.get("api_key"))
    default_model = _to_str(upstream_cfg.get("default_model")) or DEFAULT_MODEL
    temperature = _to_float(upstream_cfg.get("temperature"))
    if temperature is None:
        temperature = DEFAULT_TEMPERATURE
    max_tokens = _to_int(upstream_cfg.get("max_tokens")) or DEFAULT_MAX_TOKENS
    timeout_seconds = _to_float(upstream_cfg.get("timeout_seconds"))
    site_url = _to_str(upstream_cfg.get("site_url")) or DEFAULT_SITE_URL
    site_name = _to_str(upstream_cfg.get("site_name")) or DEFAULT_SITE_NAME

    host = _to_str(server_cfg.get("host")) or "127.0.0.1"
    port = _to_int(server_cfg.get("port")) or 3001

    system_prompt = _to_str(_get(config, "sessions", "system_prompt")) or DEFAULT_SYSTEM_PROMPT

    # Env overrides
    api_key = _to_secret(os.getenv("OPENROUTER_API_KEY")) or api_key
    default_model = _to_str(os.getenv("CHATRELAY_DEFAULT_MODEL")) or default_model
    host = _to_str(os.getenv("CHATRELAY_HOST")) or host
    port_env = os.getenv("CHATRELAY_PORT")
    if port_env is not None:
        parsed_port = _to_int(port_env)
        if parsed_port is None:
            logger.warning("Invalid CHATRELAY_PORT=%s", port_env)
        else:
            port = parsed_port

    return RelaySettings(
        upstream=UpstreamSettings(
            base_url=base_url,
            api_key=api_key,
            default_model=default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout_seconds=timeout_seconds if timeout_seconds and timeout_seconds > 0 else None,
            site_url=site_url,
            site_name=site_name,
        ),
        server=ServerSettings(host=host, port=port),
        system_prompt=system_prompt,
    )


def missing_required_settings(settings: RelaySettings) -> list[MissingSetting]:
    """List the required settings that are not configured."""
    missing: list[MissingSetting] = []
    if not settings.upstream.api_key:
        missing.append(
            MissingSetting(
                name="OPENROUTER_API_KEY",
                description="API key for the chat completion endpoint",
                example="sk-or-v1-...",
            )
        )
    return missing
