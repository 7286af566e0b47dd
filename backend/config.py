"""
Runtime Configuration for the live agent backend.

Provides a singleton RuntimeConfig class whose values default from the
environment and can be adjusted at runtime without a restart.

Usage:
    from config import runtime_config
    ttl = runtime_config.search_cache_ttl_s
    runtime_config.update(search_timeout_s=5.0)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List
from threading import Lock
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).strip().lower() == "true"


def _env_list(key: str, default: str) -> List[str]:
    return [part.strip() for part in os.environ.get(key, default).split(",") if part.strip()]


def _build_database_url_default() -> str:
    """
    Build a PostgreSQL URL from env vars when DATABASE_URL is not explicitly set.

    Password is URL-encoded to avoid auth breakage with special characters.
    """
    explicit = os.environ.get("DATABASE_URL", "").strip()
    if explicit:
        return explicit

    user = os.environ.get("POSTGRES_USER", "agent").strip() or "agent"
    password = os.environ.get("POSTGRES_PASSWORD", "agent-local-dev")
    host = os.environ.get("POSTGRES_HOST", "localhost").strip() or "localhost"
    port = os.environ.get("POSTGRES_PORT", "5432").strip() or "5432"
    db = os.environ.get("POSTGRES_DB", "agent").strip() or "agent"

    safe_password = quote_plus(password)
    return f"postgresql://{user}:{safe_password}@{host}:{port}/{db}"


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Environment mode - controls fail-open/fail-closed behavior (development, staging, production)
    agent_env: str = field(default_factory=lambda: os.environ.get("AGENT_ENV", "development"))

    cors_origins: List[str] = field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:5173,https://www.khisima.com")
    )

    # PostgreSQL database settings
    database_url: str = field(default_factory=_build_database_url_default)
    database_enabled: bool = field(default_factory=lambda: _env_bool("DATABASE_ENABLED", "true"))
    database_pool_size: int = field(default_factory=lambda: int(os.environ.get("DATABASE_POOL_SIZE", "10")))
    database_connect_retries: int = field(
        default_factory=lambda: int(os.environ.get("DATABASE_CONNECT_RETRIES", "5"))
    )
    database_retry_delay_s: float = field(
        default_factory=lambda: float(os.environ.get("DATABASE_RETRY_DELAY_S", "2.0"))
    )

    # Redis settings (rate limiting)
    redis_url: str = field(default_factory=lambda: os.environ.get("REDIS_URL", "redis://localhost:6379/0"))
    redis_enabled: bool = field(default_factory=lambda: _env_bool("REDIS_ENABLED", "true"))

    # Rate limiting settings
    rate_limit_ws_conn: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_WS_CONN", "30"))
    )  # WebSocket connections per IP per minute
    rate_limit_ws_msg: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_WS_MSG", "30"))
    )  # Frames per connection per minute
    rate_limit_search: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_SEARCH", "60"))
    )  # Answer lookups per IP per minute
    rate_limit_inbox: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_INBOX", "5"))
    )  # Inbox captures per IP per 15 min window

    # Cached site search
    site_base_url: str = field(
        default_factory=lambda: os.environ.get("SEARCH_SITE_BASE_URL", "https://www.khisima.com").rstrip("/")
    )
    search_seed_paths: List[str] = field(
        default_factory=lambda: _env_list("SEARCH_SEED_PATHS", "/,/services,/about-us,/contact,/workplace,/quote")
    )
    search_timeout_s: float = field(default_factory=lambda: float(os.environ.get("SEARCH_TIMEOUT_S", "8.0")))
    search_cache_ttl_s: int = field(default_factory=lambda: int(os.environ.get("SEARCH_CACHE_TTL_S", "900")))

    # Encyclopedia stage (off unless explicitly enabled)
    wiki_enabled: bool = field(default_factory=lambda: _env_bool("WIKI_ANSWER_ENABLED", "false"))
    wiki_language: str = field(default_factory=lambda: os.environ.get("WIKI_LANGUAGE", "en"))

    # Admin token verification
    jwt_secret: str = field(default_factory=lambda: os.environ.get("JWT_SECRET", ""))

    # Outbound mail (transcript forwarding)
    email_host: str = field(default_factory=lambda: os.environ.get("EMAIL_HOST", "smtp.hostinger.com"))
    email_port: int = field(default_factory=lambda: int(os.environ.get("EMAIL_PORT", "465")))
    email_user: str = field(default_factory=lambda: os.environ.get("EMAIL_USER", ""))
    email_password: str = field(default_factory=lambda: os.environ.get("EMAIL_PASS", ""))
    email_from: str = field(default_factory=lambda: os.environ.get("EMAIL_FROM", ""))

    # WebSocket keepalive (passed to uvicorn)
    ws_ping_interval: float = field(default_factory=lambda: float(os.environ.get("WS_PING_INTERVAL", "25.0")))
    ws_ping_timeout: float = field(default_factory=lambda: float(os.environ.get("WS_PING_TIMEOUT", "20.0")))

    max_message_length: int = field(default_factory=lambda: int(os.environ.get("MAX_MESSAGE_LENGTH", "2000")))

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "rate_limit_ws_conn": (1, 1000),
        "rate_limit_ws_msg": (1, 1000),
        "rate_limit_search": (1, 1000),
        "rate_limit_inbox": (1, 100),
        "search_timeout_s": (0.5, 60.0),
        "search_cache_ttl_s": (0, 86400),
        "max_message_length": (1, 20000),
    })

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., search_timeout_s=5.0)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_"):
                    ignored.append(key)
                    continue

                if hasattr(self, key):
                    if key == "site_base_url" and isinstance(value, str):
                        cleaned = value.strip()
                        if not cleaned.startswith(("http://", "https://")):
                            ignored.append(key)
                            logger.warning(f"Config rejected invalid URL: {key}={value!r}")
                            continue
                        value = cleaned.rstrip("/")

                    # Validate numeric ranges
                    if key in self._VALIDATION_RANGES:
                        lo, hi = self._VALIDATION_RANGES[key]
                        if not (lo <= value <= hi):
                            ignored.append(key)
                            logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                            continue

                    old_value = getattr(self, key)
                    setattr(self, key, value)
                    updated.append(key)
                    logger.info(f"Config updated: {key} = {value} (was {old_value})")
                else:
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored}

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields and secrets)."""
        from dataclasses import fields as dataclass_fields

        secret_fields = {"jwt_secret", "email_password", "database_url"}
        result = {}
        for field_info in dataclass_fields(self):
            if field_info.name.startswith("_") or field_info.name in secret_fields:
                continue
            result[field_info.name] = getattr(self, field_info.name)
        return result


runtime_config = RuntimeConfig()


def get_config() -> RuntimeConfig:
    """Get the runtime config singleton."""
    return runtime_config
