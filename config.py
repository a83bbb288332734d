"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

MONGODB_URI and CAPABILITY_KEY are required: the service cannot store codes
without MongoDB, and the capability key must be provisioned out of band
(generate one with ``Fernet.generate_key()``), never per process.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "account-recovery"
    mongo_timeout_ms: int = 5000


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis the throttle log lives in MongoDB
    redis_uri: Optional[str] = None
    redis_timeout_seconds: float = 2.0


class CapabilitySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # urlsafe-base64 32-byte Fernet key
    capability_key: str


class VerificationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    code_length: int = 6
    code_ttl_seconds: int = 300

    # Brute-force budget for the 6-digit code, keyed by client address
    verify_limit: int = 3
    verify_window_seconds: int = 60

    upstream_timeout_seconds: float = 10.0
    mail_queue_size: int = 1000


class IdentitySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    confirmation_ttl_seconds: int = 86400
    reset_ttl_seconds: int = 21600
    max_open_resets: int = 2

    signup_limit: int = 5
    signup_window_seconds: int = 43200
    login_limit: int = 10
    login_window_seconds: int = 900
    resend_limit: int = 3
    resend_window_seconds: int = 3600
    reset_request_limit: int = 4
    reset_request_window_seconds: int = 86400
    selector_limit: int = 5
    selector_window_seconds: int = 3600


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "Account Recovery"
    mail_timeout_seconds: float = 5.0


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "http://localhost:8000"
    app_name: str = "Account Recovery"

    cors_origins: list[str] = ["*"]

    # Honour CF-Connecting-IP / X-Forwarded-For for the throttle actor. Only
    # enable behind a proxy that overwrites them; clients can forge them.
    trust_proxy_headers: bool = False

    session_cookie_name: str = "session_id"
    cookie_secure: bool = True

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    capability: Optional[CapabilitySettings] = None
    verification: Optional[VerificationSettings] = None
    identity: Optional[IdentitySettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.capability is None:
            self.capability = CapabilitySettings()
        if self.verification is None:
            self.verification = VerificationSettings()
        if self.identity is None:
            self.identity = IdentitySettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
