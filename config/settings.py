"""
Environment configuration management for PressDesk.
Single source of truth for all environment variables.
"""

import os
from functools import lru_cache
from typing import Optional


class Settings:
    """Application settings from environment variables."""

    def __init__(self):
        self.database_url: str = self._get_required("DATABASE_URL")
        self.environment: str = self._get_optional("ENVIRONMENT", "development")
        self.debug: bool = self._get_optional("DEBUG", "false").lower() == "true"
        self.log_level: str = self._get_optional("LOG_LEVEL", "INFO")
        self.log_format: str = self._get_optional("LOG_FORMAT", "plain").lower()
        self.encryption_key: Optional[str] = os.getenv("ENCRYPTION_KEY")

        # Outbound WordPress calls: one total timeout, never retried
        self.wp_request_timeout: float = float(self._get_optional("WP_REQUEST_TIMEOUT", "30"))
        self.wp_user_agent: str = self._get_optional("WP_USER_AGENT", "PressDesk/1.0")

        self.db_pool_min: int = int(self._get_optional("DB_POOL_MIN", "2"))
        self.db_pool_max: int = int(self._get_optional("DB_POOL_MAX", "10"))
        self.port: int = int(self._get_optional("PORT", "8000"))

    def _get_required(self, key: str) -> str:
        """Get required environment variable or raise error."""
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Required environment variable {key} not found")
        return value

    def _get_optional(self, key: str, default: str) -> str:
        """Get optional environment variable with default."""
        return os.getenv(key, default)

    @property
    def structured_logs(self) -> bool:
        return self.log_format == "json"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process (read on first use, not at import)."""
    return Settings()
