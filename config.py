"""
Configuration for the notification state store.

Connection settings are loaded from environment variables:
- REDIS_HOST
- REDIS_PORT
- REDIS_TIMEOUT
- NOTIFY_MARKER_DIR

Telegram credentials are optional:
- TELEGRAM_BOT_TOKEN
- TELEGRAM_CHAT_ID

You can set these via:
1. Environment variables (export REDIS_HOST=...)
2. .env file next to this module (recommended for local development)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent / ".env"
if env_path.exists():
    # Real environment wins over .env so cron/systemd overrides still apply.
    load_dotenv(env_path, override=False)

# =====================
# FIXED SETTINGS
# =====================

DEFAULT_REDIS_HOST = "192.168.0.175"
DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_TIMEOUT = 5.0

REDIS_KEY_PREFIX = "ceph:notifications"
MARKER_PREFIX = "ceph"
DEFAULT_MARKER_DIR = "/tmp"

# 1 hour default TTL for notification states
DEFAULT_TTL = 3600

TOKEN_PATTERN = re.compile(r"^\d+:[A-Za-z0-9_-]{20,}$")
CHAT_ID_PATTERN = re.compile(r"^(-?\d+|@[A-Za-z0-9_]{5,})$")


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _positive_float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be greater than zero, got {raw!r}")
    return value


@dataclass(frozen=True)
class StoreConfig:
    """
    Everything the notification store needs, resolved once at startup.
    """

    redis_host: str = DEFAULT_REDIS_HOST
    redis_port: int = DEFAULT_REDIS_PORT
    redis_timeout: float = DEFAULT_REDIS_TIMEOUT
    key_prefix: str = REDIS_KEY_PREFIX
    default_ttl: int = DEFAULT_TTL
    marker_dir: str = DEFAULT_MARKER_DIR
    marker_prefix: str = MARKER_PREFIX

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        env = os.environ if env is None else env

        port = _int_env(env, "REDIS_PORT", DEFAULT_REDIS_PORT)
        if not 0 < port < 65536:
            raise ValueError(f"REDIS_PORT must be between 1 and 65535, got {port}")

        return cls(
            redis_host=env.get("REDIS_HOST") or DEFAULT_REDIS_HOST,
            redis_port=port,
            redis_timeout=_positive_float_env(env, "REDIS_TIMEOUT", DEFAULT_REDIS_TIMEOUT),
            marker_dir=env.get("NOTIFY_MARKER_DIR") or DEFAULT_MARKER_DIR,
        )

    @property
    def address(self) -> str:
        return f"{self.redis_host}:{self.redis_port}"


@dataclass(frozen=True)
class AlertConfig:
    """
    Telegram delivery settings. Both fields are optional; without them
    alerts are skipped with a warning instead of failing the caller.
    """

    bot_token: Optional[str] = None
    chat_id: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AlertConfig":
        env = os.environ if env is None else env
        token = env.get("TELEGRAM_BOT_TOKEN") or None
        chat_id = env.get("TELEGRAM_CHAT_ID") or None

        if token and not TOKEN_PATTERN.match(token):
            raise ValueError(
                "TELEGRAM_BOT_TOKEN looks invalid. Expected format like '123456:ABC...'. "
                "Do not use placeholders like '...'."
            )

        if chat_id and not CHAT_ID_PATTERN.match(chat_id):
            raise ValueError(
                "TELEGRAM_CHAT_ID looks invalid. Use a numeric chat id (e.g. 1610205172, -100...) "
                "or a channel username like @my_channel."
            )

        return cls(bot_token=token, chat_id=chat_id)

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def log_level_from_env(env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    level = (env.get("LOG_LEVEL") or "WARNING").strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {env.get('LOG_LEVEL')!r}")
    return level
