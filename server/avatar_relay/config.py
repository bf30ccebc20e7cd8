"""Configuration helpers for the avatar relay service and client."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from .errors import MissingConfiguration

logger = logging.getLogger(__name__)

HEYGEN_API_BASE = "https://api.heygen.com"
PUBLIC_STUN_URL = "stun:stun.l.google.com:19302"


def _parse_float(raw: Optional[str], default: float, name: str) -> float:
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid float for %s: %s", name, raw)
        return default


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Values are read once when the module is imported; tests reload the module
    after patching the environment.
    """

    api_prefix: str = os.getenv("API_PREFIX", "/api/heygen")
    service_name: str = os.getenv("SERVICE_NAME", "Mentor Avatar Relay")
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # Mentor persona LLM; canned replies are used when unset
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    mentor_model: str = os.getenv("MENTOR_MODEL", "gpt-4o-mini")
    relay_timeout_seconds: float = _parse_float(os.getenv("RELAY_TIMEOUT_SECONDS"), 30.0, "RELAY_TIMEOUT_SECONDS")
    speaking_min_ms: float = _parse_float(os.getenv("SPEAKING_MIN_MS"), 2000.0, "SPEAKING_MIN_MS")
    speaking_ms_per_char: float = _parse_float(os.getenv("SPEAKING_MS_PER_CHAR"), 80.0, "SPEAKING_MS_PER_CHAR")

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and knobs for the HeyGen streaming API.

    Built once at process startup and handed to the gateway explicitly.
    """

    api_key: Optional[str]
    avatar_id: Optional[str]
    voice_id: Optional[str]
    base_url: str = HEYGEN_API_BASE
    timeout: float = 30.0
    quality: str = "high"
    voice_rate: float = 1.0

    REQUIRED = (
        ("api_key", "HEYGEN_API_KEY"),
        ("avatar_id", "HEYGEN_AVATAR_ID"),
        ("voice_id", "HEYGEN_VOICE_ID"),
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProviderConfig":
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("HEYGEN_API_KEY") or None,
            avatar_id=env.get("HEYGEN_AVATAR_ID") or None,
            voice_id=env.get("HEYGEN_VOICE_ID") or None,
            base_url=(env.get("HEYGEN_BASE_URL") or HEYGEN_API_BASE).rstrip("/"),
            timeout=_parse_float(env.get("HEYGEN_TIMEOUT_SECONDS"), 30.0, "HEYGEN_TIMEOUT_SECONDS"),
            quality=env.get("HEYGEN_QUALITY") or "high",
            voice_rate=_parse_float(env.get("HEYGEN_VOICE_RATE"), 1.0, "HEYGEN_VOICE_RATE"),
        )

    def missing(self) -> list[str]:
        """Return the environment variable names of every unset credential."""

        return [env_name for attr, env_name in self.REQUIRED if not getattr(self, attr)]

    def validate(self) -> None:
        missing = self.missing()
        if missing:
            raise MissingConfiguration(missing)

    def describe(self) -> dict[str, str]:
        """Startup summary safe to log: never includes the key itself."""

        return {
            "api_key": "set" if self.api_key else "NOT SET",
            "avatar_id": self.avatar_id or "NOT SET",
            "voice_id": self.voice_id or "NOT SET",
            "base_url": self.base_url,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
