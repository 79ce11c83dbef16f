"""
Shared configuration management for the Mini App Auth Bridge.
"""

from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigError


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AUTH_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Telegram
    bot_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("bot_token", "TELEGRAM_BOT_TOKEN", "BOT_TOKEN")
    )
    max_age_seconds: int = Field(default=0, ge=0)

    # Identity provider
    identity_provider: str = "firebase"
    firebase_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("firebase_project_id", "FIREBASE_PROJECT_ID")
    )
    firebase_client_email: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("firebase_client_email", "FIREBASE_CLIENT_EMAIL")
    )
    firebase_private_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("firebase_private_key", "FIREBASE_PRIVATE_KEY")
    )
    firebase_service_account_json_base64: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "firebase_service_account_json_base64",
            "FIREBASE_SERVICE_ACCOUNT_JSON_BASE64"
        )
    )

    # Upstream calls
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)
    upstream_max_attempts: int = Field(default=1, ge=1)
    upstream_retry_base_delay: float = Field(default=0.5, ge=0)

    def require_bot_token(self) -> str:
        """Return the bot token or raise ConfigError when it is not set."""
        token = self.bot_token.get_secret_value() if self.bot_token else ""
        if not token.strip():
            raise ConfigError("Telegram bot token is not configured")
        return token


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
