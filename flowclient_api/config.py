"""
Service Configuration

Settings are read from environment variables; a .env file in the
working directory is loaded first if present.

- PORT: Listen port (default: 3000)
- HOST: Listen address (default: 0.0.0.0)
- PRESENCE_TIMEOUT_MS: Heartbeat staleness timeout (default: 60000)
- PRESENCE_CLEANUP_INTERVAL_MS: Reaper sweep interval (default: 15000)
- RATE_LIMIT_MAX: Requests allowed per window on /ping (default: 100)
- RATE_LIMIT_WINDOW_MS: Rate limit window (default: 60000)
- LOG_LEVEL: Root logging level (default: INFO)
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime tunables for the presence service."""
    host: str = "0.0.0.0"
    port: int = 3000
    presence_timeout_ms: int = 60_000
    cleanup_interval_ms: int = 15_000
    rate_limit_max: int = 100
    rate_limit_window_ms: int = 60_000
    log_level: str = "INFO"

    @property
    def presence_timeout_seconds(self) -> float:
        return self.presence_timeout_ms / 1000

    @property
    def cleanup_interval_seconds(self) -> float:
        return self.cleanup_interval_ms / 1000

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and .env)."""
        load_dotenv()
        return cls(
            host=os.getenv("HOST", cls.host),
            port=_int_env("PORT", cls.port),
            presence_timeout_ms=_int_env("PRESENCE_TIMEOUT_MS", cls.presence_timeout_ms),
            cleanup_interval_ms=_int_env("PRESENCE_CLEANUP_INTERVAL_MS", cls.cleanup_interval_ms),
            rate_limit_max=_int_env("RATE_LIMIT_MAX", cls.rate_limit_max),
            rate_limit_window_ms=_int_env("RATE_LIMIT_WINDOW_MS", cls.rate_limit_window_ms),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
