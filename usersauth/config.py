"""
Package configuration.

Loads settings from environment variables (prefix USERS_) with sensible
defaults. The feature flags are read once, when the auth component is
initialized.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class BadConfigurationError(Exception):
    """Raised at startup when the settings contradict each other."""
    pass


class Settings(BaseSettings):
    """Users auth settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="USERS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"

    # Scheme, host and base path this application is served from. URLs
    # under it are treated as internal.
    base_url: str = "http://localhost:8000"

    # ==========================================================================
    # Feature flags
    # ==========================================================================

    social_login: bool = False
    remember_me: bool = False
    second_factor: bool = False
    email_required: bool = True
    email_validate: bool = False

    # ==========================================================================
    # Authorization
    # ==========================================================================

    # Controller scope the default allow-list is installed under
    allow_scope: str = "*"
    # None keeps the built-in list of public actions
    allowed_actions: list[str] | None = None

    # ==========================================================================
    # Redirects
    # ==========================================================================

    login_action: str = "/users/login"
    verify_action: str = "/users/verify"
    login_redirect: str = "/"
    logout_redirect: str = "/users/login"

    # ==========================================================================
    # Error tracking
    # ==========================================================================

    # Empty leaves Sentry off
    sentry_dsn: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def validate_config(settings: Settings) -> None:
    """
    Refuse settings that cannot work together.

    Raises:
        BadConfigurationError: email validation without required email
    """
    if not settings.email_required and settings.email_validate:
        raise BadConfigurationError(
            "You can't enable email validation workflow if use_email is false"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
