"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Redis is optional: without REDIS_URI the attempt counters live in a MongoDB
collection with a TTL index instead.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "verification"
    verification_collection: str = "verification-requests"
    rate_limit_collection: str = "verification-attempts"
    seed_collection: str = "authenticator-seeds"
    server_selection_timeout_ms: int = 5000


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional: without Redis the limiter falls back to MongoDB counters
    redis_uri: Optional[str] = None
    redis_key_prefix: str = "verify_attempts"


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    max_attempts_per_target: int = Field(default=5, ge=1)
    max_attempts_per_client: int = Field(default=20, ge=1)
    window_seconds: int = Field(default=600, ge=1)


class VerificationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Unset means each purpose keeps its own default
    default_ttl_seconds: Optional[int] = Field(default=None, ge=1)
    default_code_length: Optional[int] = Field(default=None, ge=1)
    totp_period_seconds: Optional[int] = Field(default=None, ge=1)

    # Base URL of the page that accepts ?type=&target=&code= links
    verify_base_url: Optional[str] = None

    sweep_interval_seconds: int = Field(default=300, ge=1)


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "verification"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    rate_limit: Optional[RateLimitSettings] = None
    verification: Optional[VerificationSettings] = None
    logging: Optional[LoggingSettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.rate_limit is None:
            self.rate_limit = RateLimitSettings()
        if self.verification is None:
            self.verification = VerificationSettings()
        if self.logging is None:
            self.logging = LoggingSettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
