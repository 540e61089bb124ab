"""Application configuration from environment variables and .env file."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings for the receipt-intake service.

    Pydantic loads values from OS environment variables first, then the
    .env file, then the defaults below.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./finsplit.db",
        description="SQLAlchemy database URL",
    )

    # Messaging channel (Twilio WhatsApp API)
    twilio_account_sid: str = Field(default="", description="Channel account SID")
    twilio_auth_token: str = Field(default="", description="Channel auth token")
    twilio_phone_number: str = Field(
        default="", description="Service sender number in E.164 form, without channel prefix"
    )
    twilio_api_base: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="Base URL of the channel REST API",
    )

    # AI extraction (Ollama vision model)
    ollama_host: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3.2-vision:latest")
    ai_timeout_seconds: float = Field(default=60.0)
    synthetic_fallback_enabled: bool = Field(
        default=True,
        description="Use the synthetic extractor when the AI extractor fails",
    )

    # Media download
    media_min_bytes: int = Field(
        default=1000, description="Smaller payloads are rejected as disguised error pages"
    )
    media_timeout_seconds: float = Field(default=15.0)

    # Metering and entitlements
    credit_cost_per_receipt: int = Field(default=1)
    enforce_entitlements: bool = Field(
        default=False,
        description="Block disabled channels and empty balances instead of only logging",
    )

    # Web app links used in replies
    app_url: str = Field(default="https://finsplit.app")
    default_group_name: str = Field(default="Despesas Gerais")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="logs/server.log")

    @property
    def channel_credentials_configured(self) -> bool:
        """Whether media download and outbound sends can authenticate."""
        return bool(self.twilio_account_sid and self.twilio_auth_token)


# Lazy loader to ensure environment is loaded before instantiation
_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        if not _settings_instance.channel_credentials_configured:
            logger.warning("Channel credentials not configured; media download and replies will fail")
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "reset_settings"]
