"""
Onboarding Engine - Configuration and settings.

OnboardingSettings holds only what the workflow engine and its bundled flows
need. Values come from the environment (ONBOARDING_*) or a local .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class OnboardingSettings(BaseSettings):
    """Engine settings shared by every flow."""

    model_config = SettingsConfigDict(
        env_prefix="ONBOARDING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Remote availability lookups (username/email uniqueness)
    availability_timeout_seconds: float = 3.0

    # Age policy
    minimum_age: int = 13
    maximum_age: int = 120
    privacy_age_threshold: int = 16  # Phone steps hidden below this age

    # Durable progress storage
    state_dir: Path = Path(".onboarding_state")
    key_prefix: str = "@onboarding"


@lru_cache
def get_settings() -> OnboardingSettings:
    """Get cached settings instance."""
    return OnboardingSettings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: OnboardingSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
