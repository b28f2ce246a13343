"""Credential management for relay-watch.

Resolves the relay API key and endpoint URLs from the relay-watch config,
falling back to the environment block of Claude Code's settings.json.
"""

from __future__ import annotations

import json
import os
import platform
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from relay_watch.config.settings import DEFAULT_SUBSCRIPTION_URL, DEFAULT_USAGE_URL

CODE88_HOSTS = ("88code.org", "88code.ai", "rainapp.top")
PACKY_HOST = "packyapi.com"
PACKY_USAGE_URL = "https://www.packyapi.com/api/usage/token/"


class Provider(str, Enum):
    """Relay response schema family."""

    CODE88 = "code88"
    PACKY = "packy"


def detect_provider(usage_url: str) -> Provider | None:
    """Identify the relay provider from its usage endpoint URL.

    Returns:
        Provider, or None for relays whose usage schema is not supported.
    """
    if any(host in usage_url for host in CODE88_HOSTS):
        return Provider.CODE88
    if PACKY_HOST in usage_url:
        return Provider.PACKY
    return None


@dataclass(frozen=True)
class Credentials:
    """API key plus the endpoints it is valid for."""

    api_key: str
    usage_url: str = DEFAULT_USAGE_URL
    subscription_url: str = DEFAULT_SUBSCRIPTION_URL

    @property
    def provider(self) -> Provider | None:
        return detect_provider(self.usage_url)

    @property
    def service_name(self) -> str:
        """Short service label for the statusline."""
        provider = self.provider
        if provider is Provider.CODE88:
            return "88code"
        if provider is Provider.PACKY:
            return "packy"
        return "relay"


def get_claude_settings_path() -> Path:
    """Get the path to Claude Code's settings.json.

    Note:
        - Windows: %APPDATA%/.claude/settings.json
        - macOS/Linux: ~/.claude/settings.json
    """
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", "~")).expanduser()
    else:
        base = Path.home()
    return base / ".claude" / "settings.json"


def read_claude_env(settings_path: Path | None = None) -> dict:
    """Read the ``env`` block of Claude Code's settings.json.

    Returns:
        The env mapping, or an empty dict if the file is missing or corrupt.
    """
    path = settings_path or get_claude_settings_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            settings = json.load(f)
    except (OSError, json.JSONDecodeError):
        return {}
    env = settings.get("env") if isinstance(settings, dict) else None
    return env if isinstance(env, dict) else {}


def get_api_key_from_claude_settings(settings_path: Path | None = None) -> str | None:
    """Return ANTHROPIC_AUTH_TOKEN when Claude Code is pointed at a relay.

    The token is only used when ANTHROPIC_BASE_URL is also set; without a
    base URL the token belongs to the official API, not a relay.
    """
    env = read_claude_env(settings_path)
    if not env.get("ANTHROPIC_BASE_URL"):
        return None
    token = env.get("ANTHROPIC_AUTH_TOKEN")
    return token if isinstance(token, str) and token else None


def usage_url_for_base_url(base_url: str) -> str:
    """Derive the usage endpoint for a relay base URL."""
    if PACKY_HOST in base_url:
        return PACKY_USAGE_URL
    if "88code" in base_url:
        return DEFAULT_USAGE_URL
    # Other relays are assumed to expose the packy-compatible path
    base = base_url.rstrip("/")
    for suffix in ("/v1", "/api"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
    return f"{base}/api/usage/token/"


def get_usage_url_from_claude_settings(settings_path: Path | None = None) -> str | None:
    """Derive the usage endpoint from ANTHROPIC_BASE_URL, if set."""
    base_url = read_claude_env(settings_path).get("ANTHROPIC_BASE_URL")
    if not isinstance(base_url, str) or not base_url:
        return None
    return usage_url_for_base_url(base_url)


def load_credentials(config: dict, settings_path: Path | None = None) -> Credentials | None:
    """Build Credentials from config, falling back to Claude Code settings.

    Args:
        config: Loaded relay-watch configuration.
        settings_path: Optional override for Claude Code's settings.json.

    Returns:
        Credentials, or None if no API key is configured anywhere.
    """
    api_key = config.get("api_key") or get_api_key_from_claude_settings(settings_path)
    if not api_key:
        return None

    usage_url = (
        config.get("usage_url")
        or get_usage_url_from_claude_settings(settings_path)
        or DEFAULT_USAGE_URL
    )
    subscription_url = config.get("subscription_url") or DEFAULT_SUBSCRIPTION_URL
    return Credentials(api_key=api_key, usage_url=usage_url, subscription_url=subscription_url)


__all__ = [
    "Provider",
    "Credentials",
    "detect_provider",
    "get_claude_settings_path",
    "read_claude_env",
    "get_api_key_from_claude_settings",
    "usage_url_for_base_url",
    "get_usage_url_from_claude_settings",
    "load_credentials",
]
