"""
Application configuration using Pydantic Settings
Reads from environment variables and .env file
"""
import re
from datetime import time
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder used when no alert destination is configured
DEFAULT_ALERT_DESTINATION = "1234567890@g.us"

KNOWN_CLASSIFIER_PROVIDERS = ("openai", "groq", "anthropic")

_CLOCK_TIME = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


class Settings(BaseSettings):
    """Application settings from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///data/sales.sqlite", alias="DATABASE_URL")
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")

    # Application
    environment: str = Field(default="production", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Alerts / reports destination (chat id on the messaging platform)
    alert_destination: str = Field(default=DEFAULT_ALERT_DESTINATION, alias="ALERT_DESTINATION")

    # Classification providers
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_MODEL")
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1", alias="GROQ_BASE_URL")
    groq_model: str = Field(default="llama-3.3-70b-versatile", alias="GROQ_MODEL")
    groq_transcription_model: str = Field(default="whisper-large-v3", alias="GROQ_TRANSCRIPTION_MODEL")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-5", alias="ANTHROPIC_MODEL")
    classifier_providers: str = Field(default="openai,groq,anthropic", alias="CLASSIFIER_PROVIDERS")

    # Business rules
    unit_price_clp: int = Field(default=2000, alias="UNIT_PRICE_CLP")
    business_timezone: str = Field(default="America/Santiago", alias="BUSINESS_TIMEZONE")
    trigger_keywords: str = Field(
        default="agua,bidon,bidón,recarga,botellon,botellón,pedido,quiero,necesito,traer,confirmado,listo",
        alias="TRIGGER_KEYWORDS",
    )
    group_alert_keywords: str = Field(
        default="agua,bidon,bidón,recarga,botellon,botellón",
        alias="GROUP_ALERT_KEYWORDS",
    )

    # Detection pipeline
    context_window_size: int = Field(default=5, ge=1, alias="CONTEXT_WINDOW_SIZE")
    transcription_cache_size: int = Field(default=100, ge=1, alias="TRANSCRIPTION_CACHE_SIZE")

    # Retroactive scanning
    scan_message_limit: int = Field(default=50, ge=1, alias="SCAN_MESSAGE_LIMIT")
    scan_lookback_days: int = Field(default=10, ge=1, alias="SCAN_LOOKBACK_DAYS")
    scan_delay_min_seconds: float = Field(default=2.0, ge=0, alias="SCAN_DELAY_MIN_SECONDS")
    scan_delay_max_seconds: float = Field(default=5.0, ge=0, alias="SCAN_DELAY_MAX_SECONDS")

    # Daily follow-up job
    daily_report_time: str = Field(default="09:00", alias="DAILY_REPORT_TIME")
    follow_up_reminder_days: int = Field(default=4, alias="FOLLOW_UP_REMINDER_DAYS")
    follow_up_range_min_days: int = Field(default=5, alias="FOLLOW_UP_RANGE_MIN_DAYS")
    follow_up_range_max_days: int = Field(default=10, alias="FOLLOW_UP_RANGE_MAX_DAYS")

    # Monitoring
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    @property
    def classifier_provider_order(self) -> List[str]:
        """Provider names in the configured order"""
        return [p.strip().lower() for p in self.classifier_providers.split(",") if p.strip()]

    @property
    def daily_report_clock(self) -> time:
        """DAILY_REPORT_TIME as a wall-clock time in the business timezone"""
        hours, minutes = _CLOCK_TIME.match(self.daily_report_time).groups()
        return time(int(hours), int(minutes))

    @property
    def trigger_keyword_list(self) -> List[str]:
        return [k.strip().lower() for k in self.trigger_keywords.split(",") if k.strip()]

    @property
    def group_alert_keyword_list(self) -> List[str]:
        return [k.strip().lower() for k in self.group_alert_keywords.split(",") if k.strip()]

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @validator("environment")
    def validate_environment(cls, v):
        """Validate environment"""
        valid_envs = ["development", "test", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of {valid_envs}")
        return v.lower()

    @validator("classifier_providers")
    def validate_classifier_providers(cls, v):
        """Validate provider names"""
        for name in (p.strip().lower() for p in v.split(",") if p.strip()):
            if name not in KNOWN_CLASSIFIER_PROVIDERS:
                raise ValueError(
                    f"CLASSIFIER_PROVIDERS entries must be among {list(KNOWN_CLASSIFIER_PROVIDERS)}, got {name!r}"
                )
        return v

    @validator("alert_destination")
    def validate_alert_destination(cls, v):
        """Empty destination falls back to the placeholder"""
        return v.strip() or DEFAULT_ALERT_DESTINATION

    @validator("daily_report_time")
    def validate_daily_report_time(cls, v):
        """Validate HH:MM"""
        if not _CLOCK_TIME.match(v.strip()):
            raise ValueError("DAILY_REPORT_TIME must be HH:MM")
        return v.strip()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
