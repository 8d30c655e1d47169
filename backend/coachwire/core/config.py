# backend/coachwire/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


PROD_ENVIRONMENTS = {"prod", "production", "live"}


class Settings(BaseSettings):
    environment: str = Field(default="development", description="development|staging|production")
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default="sqlite:///./coachwire.db",
        description="SQLAlchemy URL for the booking store",
    )
    database_echo: bool = False

    # Auth (bearer tokens minted by the identity provider)
    jwt_secret: SecretStr = Field(
        default=SecretStr("dev-only-change-me"),
        description="Shared secret used to verify identity provider JWTs",
    )
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = Field(
        default=None, description="Expected aud claim; skipped when unset"
    )

    # Stripe Configuration
    stripe_publishable_key: str = Field(
        default="", description="Stripe publishable key for the payment sheet"
    )
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")
    stripe_capture_method: Literal["automatic", "manual"] = Field(
        default="automatic",
        description="manual holds funds until the booking row is written",
    )

    payment_gateway_max_attempts: int = Field(default=3, ge=1)
    payment_gateway_retry_backoff_seconds: float = Field(default=0.5, ge=0)
    payment_confirmation_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="How long a client has to finish the payment sheet",
    )
    payment_confirmation_poll_interval_seconds: float = Field(default=2.0, gt=0)

    # Monitoring
    sentry_dsn: Optional[str] = None
    sentry_traces_sample_rate: float = 0.0

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_currency")
    @classmethod
    def _lowercase_currency(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("stripe_secret_key")
    @classmethod
    def require_stripe_key_in_prod(cls, value: SecretStr, info: ValidationInfo) -> SecretStr:
        environment = str(info.data.get("environment", "development")).lower()
        if environment in PROD_ENVIRONMENTS and not value.get_secret_value():
            raise ValueError("STRIPE_SECRET_KEY must be set in production environments.")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in PROD_ENVIRONMENTS

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())


settings = Settings()
