"""Centralized configuration — all env vars in one place."""

import os
import secrets
from pathlib import Path

DEFAULT_ENDPOINT = "https://miusage.com/v1/challenge/1/"
DEFAULT_CACHE_PATH = Path.home() / ".cache" / "miusage-feed" / "cache.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Upstream API
        self.api_endpoint: str = os.getenv("API_ENDPOINT", DEFAULT_ENDPOINT)
        self.fetch_timeout: float = float(os.getenv("FETCH_TIMEOUT", "15"))

        # Cache policy
        self.cache_ttl: int = int(os.getenv("CACHE_TTL", "3600"))
        self.refresh_flag_ttl: int = int(os.getenv("REFRESH_FLAG_TTL", "60"))
        self.cache_backend: str = os.getenv("CACHE_BACKEND", "file").lower()
        self.cache_path: Path = Path(os.getenv("CACHE_PATH", str(DEFAULT_CACHE_PATH))).expanduser()
        self.single_flight: bool = _env_bool("SINGLE_FLIGHT", False)

        # Refresh nonces; a random key means nonces don't survive a restart
        self.nonce_secret_configured: bool = bool(os.getenv("NONCE_SECRET"))
        self.nonce_secret: str = os.getenv("NONCE_SECRET") or secrets.token_hex(32)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of configuration problems worth warning about."""
        problems = []
        if self.cache_backend not in ("memory", "file"):
            problems.append(f"CACHE_BACKEND={self.cache_backend!r} is not one of 'memory', 'file'")
        if self.cache_ttl <= 0:
            problems.append("CACHE_TTL must be positive")
        if self.refresh_flag_ttl >= self.cache_ttl:
            problems.append("REFRESH_FLAG_TTL should be much shorter than CACHE_TTL")
        if self.is_production and not self.nonce_secret_configured:
            problems.append("NONCE_SECRET is not set; refresh nonces are per-process")
        return problems


settings = Settings()
